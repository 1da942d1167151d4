"""Student profile routes (onboarding, profile edit and reset, admin listing)."""

from fastapi import APIRouter, HTTPException, status

from studyhub.api.deps import AdminSession, Profile, Session
from studyhub.schemas.common import OperationResult
from studyhub.schemas.students import Student, StudentProfileUpdate

router = APIRouter(prefix="/students", tags=["students"])


@router.get("/me", response_model=Student)
async def get_my_profile(profile: Profile) -> Student:
    """The signed-in student's profile (a placeholder while in emergency mode)."""
    return profile


@router.put("/me", response_model=Student)
async def update_my_profile(data: StudentProfileUpdate, session: Session) -> Student:
    """
    Complete onboarding or edit the academic profile.

    Creates the profile if the sign-up flow never got to write one, or if
    the student reset it.
    """
    if session.data.offline:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile changes are unavailable in offline mode",
        )
    email = await session.data.fetch_account_email(session.user_id)
    profile = await session.data.save_student_profile(session.user_id, data, email=email)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Error setting up your profile. Please try again.",
        )
    session.set_profile(profile)
    return profile


@router.delete("/me", response_model=OperationResult)
async def reset_my_profile(session: Session) -> OperationResult:
    """Delete the profile; the student is sent back to onboarding."""
    result = await session.data.reset_student_profile(session.user_id)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.message)
    session.set_profile(None)
    return result


@router.get("/", response_model=list[Student])
async def list_students(session: AdminSession) -> list[Student]:
    """All students, newest first (admin only)."""
    return await session.data.list_students()
