from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# --- Auth ---

class RegisterRequest(BaseModel):
    email: EmailStr = Field(max_length=255)
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=1, max_length=72)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# --- User ---

class UserResponse(BaseModel):
    id: str
    email: str
    username: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str
    publish_date: datetime


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    publish_date: datetime | None = None


class ArticleResponse(BaseModel):
    id: str
    title: str
    description: str
    publish_date: datetime
    created_at: datetime
    updated_at: datetime
    author_id: str
    author: UserResponse


class ArticlePage(BaseModel):
    items: list[ArticleResponse]
    total: int
    page: int
    limit: int
    pages: int


class MessageResponse(BaseModel):
    message: str
