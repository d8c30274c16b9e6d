import re
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool, field_validator
from datetime import datetime
from typing import Optional, List
from enum import Enum


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"


class TaskLabel(str, Enum):
    work = "work"
    personal = "personal"
    urgent = "urgent"
    misc = "misc"


class CompletionAction(str, Enum):
    complete = "complete"
    incomplete = "incomplete"


# Uppercase, lowercase, digit and special character, at least 8 long
PASSWORD_PATTERN = re.compile(
    r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*(),.?":{}|<>]).{8,}$'
)


def _lower(value):
    """Lower-case string input so enum fields accept any casing."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _lower_all(value):
    if isinstance(value, list):
        return [_lower(item) for item in value]
    return value


def _unique(labels: List[TaskLabel]) -> List[TaskLabel]:
    """Collapse duplicate labels, keeping the first occurrence."""
    return list(dict.fromkeys(labels))


# User schemas
class UserPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str


class RegisterRequest(BaseModel):
    username: str = Field(..., max_length=255)
    email: EmailStr
    password: str = Field(..., max_length=128)

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v

    @field_validator("password")
    @classmethod
    def password_is_strong(cls, v: str) -> str:
        if not PASSWORD_PATTERN.match(v):
            raise ValueError(
                "Password must be at least 8 characters and include uppercase, "
                "lowercase, number, and special character"
            )
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterResponse(BaseModel):
    message: str
    user: UserPublic


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


# Reply schemas
class ReplyCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reply cannot be empty")
        return v


class Reply(BaseModel):
    id: int
    comment_id: int
    author_id: Optional[int] = None
    author_username: str
    text: str
    likes: int = 0
    liked: bool = False
    created_at: datetime
    updated_at: datetime


# Comment schemas
class CommentCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class Comment(BaseModel):
    id: int
    task_id: int
    author_id: Optional[int] = None
    author_username: str
    text: str
    likes: int = 0
    liked: bool = False
    created_at: datetime
    updated_at: datetime
    replies: List[Reply] = Field(default_factory=list)


# Task schemas
class TaskCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: str
    priority: TaskPriority
    status: TaskStatus
    labels: List[TaskLabel] = Field(..., min_length=1)
    completed: StrictBool

    @field_validator("priority", "status", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        return _lower(v)

    @field_validator("labels", mode="before")
    @classmethod
    def normalize_labels(cls, v):
        return _lower_all(v)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str, info) -> str:
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name.capitalize()} is required.")
        return v

    @field_validator("labels")
    @classmethod
    def dedupe_labels(cls, v: List[TaskLabel]) -> List[TaskLabel]:
        return _unique(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    labels: Optional[List[TaskLabel]] = Field(None, min_length=1)
    completed: Optional[StrictBool] = None

    @field_validator("priority", "status", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        return _lower(v)

    @field_validator("labels", mode="before")
    @classmethod
    def normalize_labels(cls, v):
        return _lower_all(v)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name.capitalize()} cannot be empty")
        return v

    @field_validator("labels")
    @classmethod
    def dedupe_labels(cls, v: Optional[List[TaskLabel]]) -> Optional[List[TaskLabel]]:
        if v is None:
            return v
        return _unique(v)


class Task(BaseModel):
    id: int
    title: str
    description: str
    priority: TaskPriority
    status: TaskStatus
    labels: List[TaskLabel]
    completed: bool
    owner_id: int
    likes_count: int = 0
    liked: bool = False
    comments: List[Comment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TaskEnvelope(BaseModel):
    message: str
    task: Task


class TaskPage(BaseModel):
    total_data: int
    total_pages: int
    current_page: int
    limit: int
    data: List[Task] = Field(default_factory=list)


# Like schemas
class TaskLikeResponse(BaseModel):
    message: str
    liked: bool
    likes_count: int


class LikeResponse(BaseModel):
    message: str
    liked: bool
    likes: int


class CommentEnvelope(BaseModel):
    message: str
    comment: Comment


class ReplyEnvelope(BaseModel):
    message: str
    reply: Reply


class MessageResponse(BaseModel):
    message: str
