"""JWT-based stateless authentication."""
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, EmailStr

from app.api.deps import (
    CurrentUser,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from app.errors import ValidationError
from app.models.user import User, UserCreate, UserOut, user_to_out
from app.services.roster import safe_object_id

router = APIRouter()


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


def _issue_tokens(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_access_token(str(user.id), user.name),
        refresh_token=create_refresh_token(str(user.id)),
        user=user_to_out(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: UserCreate):
    existing = await User.find_one(User.email == data.email)
    if existing:
        raise ValidationError("User already exists")
    user = User(
        email=data.email,
        name=data.name.strip(),
        hashed_password=get_password_hash(data.password),
    )
    await user.insert()
    return _issue_tokens(user)


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest):
    user = await User.find_one(User.email == req.email)
    if not user or user.is_placeholder:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(req: RefreshRequest):
    payload = decode_token(req.refresh_token, token_type="refresh")
    user_id = safe_object_id(payload["sub"])
    user = await User.get(user_id) if user_id else None
    if not user or user.is_placeholder:
        raise HTTPException(status_code=401, detail="User not found")
    return _issue_tokens(user)


@router.get("/me", response_model=UserOut)
async def me(user: CurrentUser):
    return user_to_out(user)
