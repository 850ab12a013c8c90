"""Company endpoints; a user owns at most one company."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from freelance_forge.app.core.security import get_current_user
from freelance_forge.app.db.session import get_db
from freelance_forge.app.models.company import Company
from freelance_forge.app.models.user import User
from freelance_forge.app.schemas.company import CompanyCreate, CompanyRead, CompanyUpdate

router = APIRouter(prefix="/companies", tags=["companies"])

_REQUIRED_FIELDS = {
    "name": "Name is required",
    "address": "Address is required",
    "registration_number": "Registration number is required",
}


def _get_my_company(db: Session, current_user: User) -> Company:
    company = None
    if current_user.company_id is not None:
        company = db.query(Company).filter(Company.id == current_user.company_id).first()
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    return company


@router.post("/", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(
    company_in: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    values = company_in.model_dump()
    for field, message in _REQUIRED_FIELDS.items():
        if not values[field].strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
    company = Company(**{field: value.strip() for field, value in values.items()})
    db.add(company)
    db.flush()
    current_user.company_id = company.id
    db.commit()
    db.refresh(company)
    return company


@router.get("/me", response_model=CompanyRead)
def get_my_company(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_my_company(db, current_user)


@router.patch("/me", response_model=CompanyRead)
def update_my_company(
    company_in: CompanyUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    company = _get_my_company(db, current_user)
    for field, value in company_in.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        if not value.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_REQUIRED_FIELDS[field])
        setattr(company, field, value.strip())
    db.commit()
    db.refresh(company)
    return company
