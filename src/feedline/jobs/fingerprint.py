from __future__ import annotations

import hashlib
import json

from feedline.main.models import JobType


def fingerprint(
    job_type: JobType,
    category: str,
    region: str,
    subject_filter: str | None,
    game_modes: str,
) -> str:
    """Identity of one logical fetch request.

    The time window is not part of it: a repeated request for the same
    subject matches the job that is still waiting.
    """
    canonical = json.dumps(
        {
            "type": JobType(job_type).value,
            "category": category,
            "region": region,
            "subject_filter": subject_filter,
            "game_modes": game_modes,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
