"""Handles user registration."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from freelance_forge.app.core.security import get_password_hash
from freelance_forge.app.db.session import get_db
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.user import UserCreate, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserRead)
def register_user(user_in: UserCreate, db: Session = Depends(get_db)):
    email = user_in.email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")
    if not user_in.password:
        raise HTTPException(status_code=400, detail="Password is required")
    address = user_in.address.strip() if user_in.address and user_in.address.strip() else None
    user = User(email=email, hashed_password=get_password_hash(user_in.password), address=address)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
