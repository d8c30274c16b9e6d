"""
Like toggling shared by tasks, comments and replies.

Every likeable row carries a ``liked_by`` JSON list of user ids. Counts are
always derived from that list, never stored on their own.
"""

import logging
from typing import Iterable, List, Tuple

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def toggle_like(liked_by: Iterable[int], user_id: int) -> Tuple[List[int], bool]:
    """
    Toggle a user's membership in a liked-by set.

    Args:
        liked_by: Current user ids (order is kept)
        user_id: User performing the toggle

    Returns:
        Tuple of (new liked-by list, liked) where liked is True if the user
        now likes the entity

    Example:
        >>> toggle_like([1, 2], 3)
        ([1, 2, 3], True)
        >>> toggle_like([1, 2, 3], 3)
        ([1, 2], False)
    """
    current = list(liked_by or [])
    if user_id in current:
        return [uid for uid in current if uid != user_id], False
    return current + [user_id], True


def toggle_entity_like(db: Session, entity, user_id: int) -> bool:
    """
    Toggle the like of ``user_id`` on a task, comment or reply and commit.

    A new list is assigned so SQLAlchemy sees the JSON column as changed.

    Returns:
        True if the entity is now liked by the user
    """
    new_liked_by, liked = toggle_like(entity.liked_by, user_id)
    entity.liked_by = new_liked_by
    db.commit()
    db.refresh(entity)
    logger.info(
        f"User {user_id} {'liked' if liked else 'unliked'} "
        f"{type(entity).__name__.lower()} {entity.id} (now {len(new_liked_by)} likes)"
    )
    return liked
