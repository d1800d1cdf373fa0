from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import timedelta
import logging

from app.db.database import get_db
from app.models.user import User
from app.models.company import Company, UserCompany
from app.crud.finance_category import finance_category_crud
from app.core.security import get_password_hash, verify_password, create_access_token, get_current_user
from app.core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6)
    name: Optional[str] = Field(None, max_length=255)
    company_name: str = Field(..., min_length=1, max_length=255)
    company_document: Optional[str] = Field(None, max_length=32)


class LoginRequest(BaseModel):
    email: str
    password: str


class CompanyInfo(BaseModel):
    id: str
    name: str
    role: Optional[str] = None
    is_default: bool = False


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    companies: List[CompanyInfo] = []


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse


async def _user_response(db: AsyncSession, user: User) -> UserResponse:
    result = await db.execute(
        select(Company, UserCompany)
        .join(UserCompany, UserCompany.company_id == Company.id)
        .where(UserCompany.user_id == user.id)
        .order_by(UserCompany.is_default.desc(), Company.name)
    )
    companies = [
        CompanyInfo(id=company.id, name=company.name, role=membership.role, is_default=bool(membership.is_default))
        for company, membership in result.all()
    ]
    return UserResponse(id=user.id, email=user.email, name=user.name, companies=companies)


def _token_for(user: User) -> str:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return create_access_token(subject=str(user.id), expires_delta=access_token_expires)


@router.post("/register", response_model=LoginResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a user together with its company and seed the default finance categories
    """
    email = register_data.email.strip().lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(email=email, name=register_data.name, password_hash=get_password_hash(register_data.password))
    company = Company(name=register_data.company_name, document=register_data.company_document)
    db.add_all([user, company])
    await db.flush()

    db.add(UserCompany(user_id=user.id, company_id=company.id, role="owner", is_default=True))
    await finance_category_crud.seed_defaults(db, company.id)
    await db.commit()
    logger.info(f"Registered user {user.id} with company {company.id}")

    return LoginResponse(
        access_token=_token_for(user),
        token_type="bearer",
        user=await _user_response(db, user),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Login endpoint that returns JWT token
    """
    query = select(User).where(User.email == login_data.email.strip().lower())
    result = await db.execute(query)
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive user"
        )

    return LoginResponse(
        access_token=_token_for(user),
        token_type="bearer",
        user=await _user_response(db, user),
    )


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information and the companies it belongs to
    """
    result = await db.execute(select(User).where(User.id == current_user))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return await _user_response(db, user)
