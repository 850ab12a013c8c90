"""User profile endpoints; the profile address is the default issuer address on invoices."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from freelance_forge.app.core.security import get_current_user
from freelance_forge.app.db.session import get_db
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.user import UserProfileRead, UserProfileUpdate

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/me", response_model=UserProfileRead)
def get_my_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserProfileRead)
def update_my_profile(
    profile: UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for field, value in profile.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(current_user, field, value.strip() or None)
    db.commit()
    db.refresh(current_user)
    return current_user
