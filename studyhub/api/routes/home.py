"""
Home Dashboard Route

One round trip for the home page: profile, the subjects for the student's
year/semester/branch with bookmark flags, admin flag, and whether the data
shown is offline placeholder data.
"""

import logging

from fastapi import APIRouter

from studyhub.api.deps import Session
from studyhub.schemas.home import HomeDashboard

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/home", tags=["home"])


@router.get("/", response_model=HomeDashboard)
async def get_home(session: Session) -> HomeDashboard:
    profile = await session.profile()
    if profile is None:
        logger.info("No profile for %s; home page shows no subjects", session.user_id)

    subjects = await session.data.subjects_with_bookmarks(profile, session.user_id)
    return HomeDashboard(
        profile=profile,
        subjects=subjects,
        is_admin=await session.is_admin(),
        emergency_mode=session.data.offline,
    )
