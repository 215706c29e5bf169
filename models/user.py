# models/user.py
from pydantic import BaseModel, Field
from typing import Literal

Role = Literal["teacher", "student"]


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=6, max_length=72)  # bcrypt ignores bytes past 72
    role: Role


class LoginRequest(BaseModel):
    email: str
    password: str
