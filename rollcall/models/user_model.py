# /rollcall/models/user_model.py

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=1)
    displayName: str


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    message: str
    token: str
    displayName: str


class ProfileUpdate(BaseModel):
    displayName: str


class ProfileResponse(BaseModel):
    displayName: str


class PasswordChange(BaseModel):
    currentPassword: str
    newPassword: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    message: str
