from feedline.jobs.fingerprint import fingerprint
from feedline.main.models import JobType


class TestFingerprint:
    def test_same_request_same_fingerprint(self):
        first = fingerprint(JobType.GRAB, "regular", "na", "p1", "casual,ranked")
        second = fingerprint("grab", "regular", "na", "p1", "casual,ranked")

        assert first == second
        assert len(first) == 64

    def test_every_component_counts(self):
        base = ("regular", "na", "p1", "casual,ranked")
        reference = fingerprint(JobType.GRAB, *base)

        assert fingerprint(JobType.PROCESS, *base) != reference
        assert fingerprint(JobType.GRAB, "brawl", "na", "p1", "casual,ranked") != reference
        assert fingerprint(JobType.GRAB, "regular", "eu", "p1", "casual,ranked") != reference
        assert fingerprint(JobType.GRAB, "regular", "na", "p2", "casual,ranked") != reference
        assert fingerprint(JobType.GRAB, "regular", "na", "p1", "ranked") != reference

    def test_region_grab_without_subject(self):
        assert fingerprint(JobType.GRAB, "tournament", "tournament-na", None, "private") != fingerprint(
            JobType.GRAB, "tournament", "tournament-na", "", "private"
        )
