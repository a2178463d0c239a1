from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Literal, Optional


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    name: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: str
    email: EmailStr
    role: Literal["admin", "user"]
    name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ProfileOut(UserOut):
    created_at: Optional[datetime] = None
