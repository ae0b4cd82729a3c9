from fastapi import APIRouter, Depends, Response

from feedline.categories.registry import DEFAULT_CATEGORY
from feedline.main.container import Container
from feedline.main.exceptions import NotFoundException
from feedline.main.logging import get_logger
from feedline.server.dependencies.container import get_container

logger = get_logger(__name__)

router = APIRouter()


@router.post("/crunch", status_code=204)
@router.post("/crunch/{category}", status_code=204)
async def crunch(category: str = DEFAULT_CATEGORY, container: Container = Depends(get_container)):
    """Crunch every participant added since the last global crunch."""
    container.categories().resolve(category)
    container.submitter().submit(
        container.crunch_workflows().crunch_global(category), name="crunch_global"
    )
    return Response(status_code=204)


@router.post("/recrunch", status_code=204)
@router.post("/recrunch/{category}", status_code=204)
async def recrunch(category: str = DEFAULT_CATEGORY, container: Container = Depends(get_container)):
    """Drop the global points and crunch everything again."""
    container.categories().resolve(category)
    container.submitter().submit(
        container.crunch_workflows().crunch_global(category, force=True), name="recrunch_global"
    )
    return Response(status_code=204)


@router.post("/rank", status_code=204)
@router.post("/rank/{category}", status_code=204)
async def rank(category: str = DEFAULT_CATEGORY, container: Container = Depends(get_container)):
    container.categories().resolve(category)
    container.submitter().submit(
        container.analyze_workflows().analyze_global(category), name="analyze_global"
    )
    return Response(status_code=204)


@router.post("/rerank", status_code=204)
@router.post("/rerank/{category}", status_code=204)
async def rerank(category: str = DEFAULT_CATEGORY, container: Container = Depends(get_container)):
    container.categories().resolve(category)
    container.submitter().submit(
        container.analyze_workflows().analyze_global(category, force=True),
        name="reanalyze_global",
    )
    return Response(status_code=204)


@router.post("/subject/{name}/crunch", status_code=204)
@router.post("/subject/{name}/crunch/{category}", status_code=204)
async def crunch_subject(
    name: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    refs = await container.lookup().in_database(category, name=name)
    if not refs:
        logger.error("Subject not found in db, won't crunch", extra={"subject_name": name})
        raise NotFoundException(f"Subject {name} not found")

    for ref in refs:
        container.submitter().submit(
            container.crunch_workflows().crunch_subject(category, ref.id, notify_name=ref.name),
            name="crunch_subject",
        )
    return Response(status_code=204)


@router.post("/subject/{name}/rank", status_code=204)
@router.post("/subject/{name}/rank/{category}", status_code=204)
async def rank_subject(
    name: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    refs = await container.lookup().in_database(category, name=name)
    if not refs:
        logger.error("Subject not found in db, won't analyze", extra={"subject_name": name})
        raise NotFoundException(f"Subject {name} not found")

    for ref in refs:
        container.submitter().submit(
            container.analyze_workflows().analyze_subject(category, ref.id),
            name="analyze_subject",
        )
    return Response(status_code=204)


@router.post("/team/{team_id}/crunch", status_code=204)
async def crunch_team(team_id: int, container: Container = Depends(get_container)):
    crunch_workflows = container.crunch_workflows()
    await crunch_workflows.ensure_team(team_id)
    container.submitter().submit(crunch_workflows.crunch_team(team_id), name="crunch_team")
    return Response(status_code=204)
