from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, Response

from feedline.categories.registry import DEFAULT_CATEGORY
from feedline.main.container import Container
from feedline.main.exceptions import NotFoundException
from feedline.main.logging import get_logger
from feedline.notifications.correlator import subject_topic
from feedline.server.dependencies.container import get_container

logger = get_logger(__name__)

router = APIRouter()


@router.post("/subject/{name}/search", status_code=204)
@router.post("/subject/{name}/search/{category}", status_code=204)
async def search_subject(
    name: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    """Search a subject in every region; results arrive as notifications."""
    container.categories().resolve(category)
    container.submitter().submit(
        container.grab_workflows().search_subject(name, category),
        name="search_subject",
        topic=subject_topic(name),
    )
    return Response(status_code=204)


@router.post("/subject/{name}/update", status_code=204)
@router.post("/subject/{name}/update/{category}", status_code=204)
async def update_subject(
    name: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    refs = await container.lookup().by_name(name, category)
    if not refs:
        raise NotFoundException(f"Subject {name} not found")

    logger.info(
        "Updating subject",
        extra={"subject_name": name, "category": category, "source": refs[0].source},
    )
    for ref in refs:
        container.submitter().submit(
            container.grab_workflows().update_subject(ref, category),
            name="update_subject",
            topic=subject_topic(ref.name),
        )
    return Response(status_code=204)


@router.post("/subject/id/{api_id}/update", status_code=204)
@router.post("/subject/id/{api_id}/update/{category}", status_code=204)
async def update_subject_by_id(
    api_id: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    ref = await container.lookup().by_id(api_id, category)
    if ref is None:
        raise NotFoundException(f"Subject {api_id} not found")

    container.submitter().submit(
        container.grab_workflows().update_subject(ref, category),
        name="update_subject",
        topic=subject_topic(ref.name),
    )
    return Response(status_code=204)


@router.post("/subjects/{region}/grab", status_code=204)
@router.post("/subjects/{region}/grab/{category}", status_code=204)
async def grab_subjects(
    region: str,
    names: list[str] = Query(...),
    minutes_ago: int = Query(default=60, ge=0),
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    container.categories().resolve(category)
    since = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
    container.submitter().submit(
        container.grab_workflows().grab_subjects(names, region, since, category),
        name="grab_subjects",
    )
    return Response(status_code=204)


@router.post("/region/{region}/update", status_code=204)
async def update_region(region: str, container: Container = Depends(get_container)):
    """Grab a whole tournament region."""
    grab = container.grab_workflows()
    grab.ensure_region(region)
    container.submitter().submit(grab.update_region(region), name="update_region")
    return Response(status_code=204)
