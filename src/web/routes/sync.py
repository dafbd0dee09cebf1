"""Endpoint to trigger a synchronization pass."""

from fastapi.routing import APIRouter
from pydantic import BaseModel

from src.exceptions import SchedulerNotInitializedError
from src.web.state import get_app_state

__all__ = ["router"]


class OkResponse(BaseModel):
    ok: bool = True


router = APIRouter()


@router.post("", response_model=OkResponse)
async def sync_now() -> OkResponse:
    """Run a pass now, after the pass in flight if there is one.

    Returns:
        OkResponse: Returned once the pass has finished.

    Raises:
        SchedulerNotInitializedError: If no scheduler is attached.
    """
    scheduler = get_app_state().scheduler
    if scheduler is None:
        raise SchedulerNotInitializedError("Scheduler not available")
    await scheduler.trigger_sync()
    return OkResponse()
