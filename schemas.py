"""
Database Schemas

Each Pydantic model below describes one MongoDB collection (the collection
name is the lowercase class name, e.g. Project -> "project"). Timestamps
(createdAt/updatedAt) and derived fields such as totalPrice are owned by the
repositories and are not accepted from callers.
"""

import re
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

ORDER_NUMBER_PATTERN = r"^[A-Za-z0-9]+-\d{6}-\d{3,}$"
CLIENT_CODE_PATTERN = r"^C\d{5}$"
FULL_NAME_RE = re.compile(r"^[a-zA-Z\s]+$")

ProjectStatus = Literal['to do', 'in progress', 'waiting for payment', 'in review', 'revision', 'done']


# Core domain schemas
class Comment(BaseModel):
    id: str
    content: str
    authorName: str
    authorEmail: str
    authorAvatar: str = ""
    isClient: bool = False
    createdAt: datetime


class Project(BaseModel):
    id: str = Field(..., min_length=1)
    numberOrder: str = Field(..., pattern=ORDER_NUMBER_PATTERN)
    projectName: str = Field(..., min_length=1)
    clientName: str = Field(..., min_length=1)
    clientPhone: str = ""
    deadline: date
    brief: str = ""
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    discount: float = Field(0, ge=0)
    deliverables: str = ""
    invoice: str = ""
    status: ProjectStatus = 'to do'
    comments: List[Comment] = []


class Client(BaseModel):
    id: str = Field(..., min_length=1)
    clientId: str = Field(..., pattern=CLIENT_CODE_PATTERN)
    clientName: str = Field(..., min_length=1)
    phoneNumber: str = ""
    email: str = ""
    address: str = ""


class Service(BaseModel):
    id: str = Field(..., min_length=1)
    serviceName: str = Field(..., min_length=1)
    description: str = ""
    servicePrice: float = Field(..., ge=0)
    durationOfWork: int = Field(..., ge=1, description="Days")
    deliverables: str = ""
    unlimitedRevision: bool = False
    totalRevision: Optional[int] = Field(None, ge=0, validate_default=True)
    status: Literal['active', 'inactive'] = 'active'

    @field_validator("totalRevision", mode="before")
    @classmethod
    def revisions_follow_unlimited_flag(cls, v, info):
        if info.data.get("unlimitedRevision"):
            return None
        if v is None or v == "":
            raise ValueError("Total revision is required when revisions are limited")
        return v


class Account(BaseModel):
    userId: str = Field(..., pattern=r"^\d{5}$")
    fullName: str
    email: EmailStr
    passwordHash: str


# Request payloads
class CommentIn(BaseModel):
    content: str
    authorName: str
    authorEmail: str
    authorAvatar: Optional[str] = ""
    isClient: bool = False

    @field_validator("content", "authorName", "authorEmail")
    @classmethod
    def required_text(cls, v: str, info) -> str:
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} is required")
        return v


class RegisterPayload(BaseModel):
    fullName: str
    email: EmailStr
    password: str

    @field_validator("fullName")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters long")
        if not FULL_NAME_RE.match(v):
            raise ValueError("Full name can only contain letters and spaces")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v


class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


# Responses
class AccountOut(BaseModel):
    userId: str
    fullName: str
    email: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class AuthResponse(BaseModel):
    account: AccountOut
    access_token: str
    token_type: str = "bearer"
