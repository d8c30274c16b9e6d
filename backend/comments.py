"""
Comment and reply lifecycle.

Comments live inside exactly one task and replies inside exactly one
comment. Ids are unique across the whole store, so a comment or reply is
addressed by its own id and its task is found through containment.
Every operation here is reserved to the owner of the containing task.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

import models
from auth.permissions import get_owned_task, get_owned_comment, get_owned_reply
from time_utils import utc_now

logger = logging.getLogger(__name__)


def create_comment(db: Session, task_id: int, user: models.User, text: str) -> models.Comment:
    """
    Append a comment to a task.

    Args:
        db: Database session
        task_id: Task to comment on
        user: Authenticated user, must own the task
        text: Already trimmed, non-empty comment text

    Returns:
        The new comment

    Raises:
        HTTPException: 404 if the task does not exist, 403 if not the owner
    """
    logger.debug(f"User {user.id} creating comment on task {task_id}")
    task = get_owned_task(db, task_id, user, "add comments")

    now = utc_now()
    comment = models.Comment(
        author_id=user.id,
        author_username=user.username,
        text=text,
        liked_by=[],
        created_at=now,
        updated_at=now,
    )
    task.comments.append(comment)
    task.updated_at = now
    db.commit()
    db.refresh(comment)

    logger.info(f"Comment {comment.id} added to task {task_id} by user {user.id}")
    return comment


def list_comments(db: Session, task_id: int, user: models.User) -> List[models.Comment]:
    """Return a task's comments in insertion order (owner only)."""
    logger.debug(f"User {user.id} listing comments for task {task_id}")
    task = get_owned_task(db, task_id, user, "view comments")
    return list(task.comments)


def create_reply(db: Session, comment_id: int, user: models.User, text: str) -> models.Reply:
    """
    Append a reply to a comment, located by its global id.

    The user must own the task that holds the comment; who wrote the comment
    does not matter.

    Raises:
        HTTPException: 404 if the comment does not exist, 403 if not the task owner
    """
    logger.debug(f"User {user.id} replying to comment {comment_id}")
    comment = get_owned_comment(db, comment_id, user, "reply to comments")

    now = utc_now()
    reply = models.Reply(
        author_id=user.id,
        author_username=user.username,
        text=text,
        liked_by=[],
        created_at=now,
        updated_at=now,
    )
    comment.replies.append(reply)
    comment.updated_at = now
    comment.task.updated_at = now
    db.commit()
    db.refresh(reply)

    logger.info(f"Reply {reply.id} added to comment {comment_id} by user {user.id}")
    return reply


def delete_comment(db: Session, comment_id: int, user: models.User) -> None:
    """
    Remove a comment (and its replies) from its task.

    Raises:
        HTTPException: 404 if the comment does not exist, 403 if not the task owner
    """
    logger.debug(f"User {user.id} deleting comment {comment_id}")
    comment = get_owned_comment(db, comment_id, user, "delete comments")

    task = comment.task
    task.comments.remove(comment)
    task.updated_at = utc_now()
    db.commit()

    logger.info(f"Comment {comment_id} deleted from task {task.id} by user {user.id}")


def delete_reply(db: Session, reply_id: int, user: models.User) -> None:
    """
    Remove a reply from the comment that contains it.

    Raises:
        HTTPException: 404 if the reply does not exist, 403 if not the task owner
    """
    logger.debug(f"User {user.id} deleting reply {reply_id}")
    reply = get_owned_reply(db, reply_id, user, "delete replies")

    comment = reply.comment
    now = utc_now()
    comment.replies.remove(reply)
    comment.updated_at = now
    comment.task.updated_at = now
    db.commit()

    logger.info(f"Reply {reply_id} deleted from comment {comment.id} by user {user.id}")
