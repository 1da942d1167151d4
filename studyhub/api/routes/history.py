"""Recently viewed notes."""

from fastapi import APIRouter, Query

from studyhub.api.deps import Session
from studyhub.schemas.history import HistoryEntry

router = APIRouter(prefix="/history", tags=["history"])


@router.get("/", response_model=list[HistoryEntry])
async def get_history(
    session: Session,
    limit: int = Query(10, ge=1, le=100),
) -> list[HistoryEntry]:
    """Most recent views first. Views of deleted notes are left out."""
    return await session.data.fetch_history(session.user_id, limit=limit)
