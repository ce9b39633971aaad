"""Groups (classes) with their admin and student rosters."""
from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Group(Document):
    """A class/cohort; admins and students hold user id strings."""

    name: str
    description: Optional[str] = None
    admins: list[str] = Field(default_factory=list)
    students: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "groups"
        indexes = ["admins", "students"]
        use_state_management = True

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins

    def is_member(self, user_id: str) -> bool:
        return user_id in self.admins or user_id in self.students


class GroupCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")
    name: str = Field(min_length=1)
    description: Optional[str] = None


class AddStudentRequest(BaseModel):
    name: str = ""


class AddAdminRequest(BaseModel):
    email: EmailStr
