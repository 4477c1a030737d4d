from fastapi import APIRouter

from logcontext.observability.live_logs import get_live_logs

router = APIRouter()


@router.get("", response_model=list[str])
async def read_live_logs() -> list[str]:
    """Most recent log lines captured in memory, oldest first."""
    return get_live_logs()
