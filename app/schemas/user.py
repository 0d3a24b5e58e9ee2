from pydantic import BaseModel, Field
from typing import Optional
import uuid


class UserBase(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")


class User(UserBase):
    id: str

    class Config:
        from_attributes = True
        extra = "ignore"


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    secret: str


class UserLogin(BaseModel):
    username: str
    password: str


class UserInDB(UserBase):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    hashed_password: str

    class Config:
        from_attributes = True
        extra = "ignore"


class SessionUser(BaseModel):
    """Identity carried by a verified session credential."""
    id: str
    username: str


class Token(BaseModel):
    token: str
    token_type: str = "bearer"


class AuthStatus(BaseModel):
    authenticated: bool
    username: Optional[str] = None
