from fastapi import APIRouter, Depends, Response

from feedline.categories.registry import DEFAULT_CATEGORY
from feedline.main.container import Container
from feedline.server.dependencies.container import get_container

router = APIRouter()


@router.post("/match/{match_id}/telemetry", status_code=204)
@router.post("/match/{match_id}/telemetry/{category}", status_code=204)
async def request_telemetry(
    match_id: str,
    category: str = DEFAULT_CATEGORY,
    container: Container = Depends(get_container),
):
    """404 without an asset, 304 when it was already ingested."""
    await container.telemetry_workflows().request_telemetry(match_id, category)
    return Response(status_code=204)
