"""
Ownership checks for tasks and the comments and replies embedded in them.

Only the owner of a task may change it, and the task owner (not the author)
moderates every comment and reply on it. Each helper resolves the resource
first and reports 404 before any 403, since ownership is derived from the
located parent task.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session
from fastapi import HTTPException, status

from models import User, Task, Comment, Reply

logger = logging.getLogger(__name__)


def _not_found(label: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")


def is_task_owner(user: User, task: Task) -> bool:
    """Return True if ``user`` owns ``task``."""
    return task.owner_id == user.id


def require_task_owner(user: User, task: Task, action: str) -> None:
    """
    Require a user to own a task, or raise an exception.

    Args:
        user: Authenticated user
        task: Task being acted on
        action: Short verb phrase for the error message (e.g. "update")

    Raises:
        HTTPException: 403 if the user is not the task owner
    """
    if not is_task_owner(user, task):
        logger.info(f"User {user.id} denied '{action}' on task {task.id} owned by {task.owner_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Forbidden: Only the task owner can {action}",
        )
    logger.debug(f"Ownership check passed for user {user.id} on task {task.id}")


def get_task_or_404(db: Session, task_id: int, lock: bool = False) -> Task:
    """
    Load a task by id.

    Args:
        db: Database session
        task_id: Task id
        lock: Take a row lock (SELECT ... FOR UPDATE) for read-modify-write updates

    Raises:
        HTTPException: 404 if the task does not exist
    """
    query = db.query(Task).filter(Task.id == task_id)
    if lock:
        query = query.with_for_update()
    task = query.first()
    if task is None:
        logger.info(f"Task {task_id} not found")
        raise _not_found("Task")
    return task


def get_owned_task(db: Session, task_id: int, user: User, action: str, lock: bool = False) -> Task:
    """Load a task and require ``user`` to own it (404, then 403)."""
    task = get_task_or_404(db, task_id, lock=lock)
    require_task_owner(user, task, action)
    return task


def get_owned_comment(
    db: Session,
    comment_id: int,
    user: User,
    action: str,
    task_id: Optional[int] = None,
    lock: bool = False,
) -> Comment:
    """
    Load a comment by its global id and require ``user`` to own its task.

    Args:
        db: Database session
        comment_id: Comment id (unique across all tasks)
        user: Authenticated user
        action: Verb phrase for the 403 message
        task_id: When given, the comment must belong to this task
        lock: Take a row lock on the comment

    Raises:
        HTTPException: 404 if the comment does not exist (or is not on task_id)
        HTTPException: 403 if the user does not own the containing task
    """
    query = db.query(Comment).filter(Comment.id == comment_id)
    if lock:
        query = query.with_for_update()
    comment = query.first()
    if comment is None or (task_id is not None and comment.task_id != task_id):
        logger.info(f"Comment {comment_id} not found (task filter: {task_id})")
        raise _not_found("Comment")

    require_task_owner(user, comment.task, action)
    return comment


def get_owned_reply(
    db: Session,
    reply_id: int,
    user: User,
    action: str,
    comment_id: Optional[int] = None,
    task_id: Optional[int] = None,
    lock: bool = False,
) -> Reply:
    """
    Load a reply by its global id and require ``user`` to own its task.

    The containing comment and task are found through the reply itself;
    ``comment_id`` and ``task_id`` only narrow the match when supplied.

    Raises:
        HTTPException: 404 if the reply does not exist or is not inside the given comment/task
        HTTPException: 403 if the user does not own the containing task
    """
    query = db.query(Reply).filter(Reply.id == reply_id)
    if lock:
        query = query.with_for_update()
    reply = query.first()
    if (
        reply is None
        or (comment_id is not None and reply.comment_id != comment_id)
        or (task_id is not None and reply.comment.task_id != task_id)
    ):
        logger.info(f"Reply {reply_id} not found (comment filter: {comment_id}, task filter: {task_id})")
        raise _not_found("Reply")

    require_task_owner(user, reply.comment.task, action)
    return reply
