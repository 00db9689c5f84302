"""Pydantic DTOs for the auth endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    phone: str = ""
    birthday: str = ""
    gender: bool = True


class SessionResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: str
    is_admin: bool
    profile: dict[str, Any] = Field(default_factory=dict)
