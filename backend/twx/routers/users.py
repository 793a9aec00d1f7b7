"""User profile endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import User
from ..schemas import UserProfileOut, UserProfileResponse, UserProfileUpdate
from ..security import enforce_csrf_origin

router = APIRouter(prefix="/user", tags=["users"], dependencies=[Depends(enforce_csrf_origin)])


@router.get("/profile", response_model=UserProfileResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the current user's profile."""
    return UserProfileResponse(data=UserProfileOut.model_validate(current_user))


@router.put("/profile", response_model=UserProfileResponse)
def update_profile(
    data: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update display name, company and title. Blank values clear the field."""
    current_user.display_name = data.display_name or None
    current_user.company = data.company or None
    current_user.title = data.title or None
    db.commit()
    db.refresh(current_user)
    return UserProfileResponse(
        message="Profile updated successfully",
        data=UserProfileOut.model_validate(current_user),
    )
