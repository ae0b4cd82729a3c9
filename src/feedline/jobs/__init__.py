from feedline.jobs.enqueuer import JobEnqueuer
from feedline.jobs.fingerprint import fingerprint
from feedline.jobs.job_manager import JobManager
from feedline.jobs.job_models import EnqueueResult, Job, JobInDb
from feedline.jobs.job_repo import JobRepository
from feedline.jobs.window import split_window

__all__ = [
    "EnqueueResult",
    "Job",
    "JobEnqueuer",
    "JobInDb",
    "JobManager",
    "JobRepository",
    "fingerprint",
    "split_window",
]
