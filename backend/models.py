from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship

from database import Base
from time_utils import utc_now


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    # Single active bearer token; cleared for every user on each login
    token = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    tasks = relationship("Task", back_populates="owner", cascade="all, delete-orphan")


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    # priority/status stored as plain strings; schemas.TaskPriority/TaskStatus validate them
    priority = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    labels = Column(JSON, nullable=False, default=list)
    completed = Column(Boolean, nullable=False, default=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    liked_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    owner = relationship("User", back_populates="tasks")
    comments = relationship(
        "Comment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )

    @property
    def likes_count(self) -> int:
        return len(self.liked_by or [])


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    author_username = Column(String(255), nullable=False)
    text = Column(Text, nullable=False)
    liked_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    task = relationship("Task", back_populates="comments")
    author = relationship("User")
    replies = relationship(
        "Reply",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="Reply.id",
    )

    @property
    def likes(self) -> int:
        return len(self.liked_by or [])


class Reply(Base):
    __tablename__ = "replies"

    id = Column(Integer, primary_key=True, index=True)
    comment_id = Column(Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    author_username = Column(String(255), nullable=False)
    text = Column(Text, nullable=False)
    liked_by = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    comment = relationship("Comment", back_populates="replies")
    author = relationship("User")

    @property
    def likes(self) -> int:
        return len(self.liked_by or [])
