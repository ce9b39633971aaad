"""Teachers and students share one account collection."""
from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import BaseModel, EmailStr, Field


class User(Document):
    """User document; roster-only students are placeholders without a usable login."""

    email: Indexed(EmailStr, unique=True)
    name: str
    hashed_password: str
    is_placeholder: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        use_state_management = True


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    percentage: Optional[int] = None


def user_to_out(user: User) -> UserOut:
    return UserOut(id=str(user.id), name=user.name, email=user.email)
