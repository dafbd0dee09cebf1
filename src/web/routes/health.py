"""Health check endpoint."""

from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter

from src.web.state import HealthSnapshot, get_app_state

__all__ = ["router"]

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthSnapshot,
    responses={500: {"model": HealthSnapshot, "description": "Unhealthy"}},
)
async def health() -> JSONResponse:
    """Report service health.

    Returns:
        JSONResponse: The health snapshot, with status 200 when healthy and 500
            when a pass is overdue or a component reports an error.
    """
    snapshot = get_app_state().health()
    return JSONResponse(
        status_code=200 if snapshot.healthy else 500,
        content=snapshot.model_dump(mode="json"),
    )
