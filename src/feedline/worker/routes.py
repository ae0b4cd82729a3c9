from feedline.main.config import get_settings
from feedline.main.container import Container
from feedline.main.exceptions import SweepAlreadyRunning
from feedline.main.logging import get_logger
from feedline.worker.worker import Worker

logger = get_logger(__name__)

worker = Worker()
settings = get_settings()


@worker.function()
async def job_status_changed(job_id: int, status: str, category: str = "regular", *, container: Container):
    """Reported by downstream consumers when a job starts, finishes or fails."""
    return await container.relay().handle(job_id, status, category)


@worker.cron_job(minute=settings.crunch_cron_minute, run_at_startup=False)
async def crunch_all(container: Container):
    crunch_workflows = container.crunch_workflows()
    for category in container.categories().names():
        try:
            result = await crunch_workflows.crunch_global(category)
            logger.info(
                "Scheduled crunch done",
                extra={"category": category, "forwarded": result.forwarded},
            )
        except SweepAlreadyRunning:
            logger.info("Crunch already running, skipping", extra={"category": category})


@worker.cron_job(minute=settings.analyze_cron_minute, run_at_startup=False)
async def analyze_all(container: Container):
    analyze_workflows = container.analyze_workflows()
    for category in container.categories().names():
        try:
            result = await analyze_workflows.analyze_global(category)
            logger.info(
                "Scheduled analysis done",
                extra={"category": category, "forwarded": result.forwarded},
            )
        except SweepAlreadyRunning:
            logger.info("Analysis already running, skipping", extra={"category": category})


@worker.cron_job(minute={0, 30}, run_at_startup=False)
async def update_tournament_regions(container: Container):
    grab = container.grab_workflows()
    tournament = container.categories().resolve("tournament")
    for region in tournament.regions:
        await grab.update_region(region)
