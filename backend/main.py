from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, joinedload
from contextlib import asynccontextmanager
from typing import List, Optional
import logging
import os

import uvicorn

from database import get_db, init_db
import models
import schemas
import comments as comment_ops
from listing import list_tasks as paginate_tasks
from likes import toggle_entity_like
from time_utils import utc_now
from auth.routes import router as auth_router
from auth.dependencies import get_current_user, get_optional_user
from auth.permissions import (
    get_task_or_404,
    get_owned_task,
    get_owned_comment,
    get_owned_reply,
)
from auth.security import is_production_like

# Configure logging
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Articles API")
    init_db()
    yield
    logger.info("Shutting down Articles API")


app = FastAPI(
    title="Articles API",
    description="Task tracking with likes, comments and replies",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register authentication router
app.include_router(auth_router)


# ============== Error Handling ==============

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed input as 400 with the first validation message."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(
        str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")
    )
    message = first.get("msg", "Invalid request").removeprefix("Value error, ")
    detail = f"{field}: {message}" if field else message
    logger.info(f"Validation failed for {request.method} {request.url.path}: {detail}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    if is_production_like():
        detail = "Server error"
    else:
        detail = f"Server error: {type(exc).__name__}: {exc}"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": detail},
    )


# ============== Response Shaping ==============

def _liked(entity, viewer_id: Optional[int]) -> bool:
    return viewer_id is not None and viewer_id in (entity.liked_by or [])


def reply_to_dict(reply: models.Reply, viewer_id: Optional[int] = None) -> dict:
    return {
        "id": reply.id,
        "comment_id": reply.comment_id,
        "author_id": reply.author_id,
        "author_username": reply.author_username,
        "text": reply.text,
        "likes": reply.likes,
        "liked": _liked(reply, viewer_id),
        "created_at": reply.created_at,
        "updated_at": reply.updated_at,
    }


def comment_to_dict(comment: models.Comment, viewer_id: Optional[int] = None) -> dict:
    return {
        "id": comment.id,
        "task_id": comment.task_id,
        "author_id": comment.author_id,
        "author_username": comment.author_username,
        "text": comment.text,
        "likes": comment.likes,
        "liked": _liked(comment, viewer_id),
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
        "replies": [reply_to_dict(r, viewer_id) for r in comment.replies],
    }


def task_to_dict(task: models.Task, viewer_id: Optional[int] = None) -> dict:
    """Public view of a task: derived like fields, no liked_by list."""
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority,
        "status": task.status,
        "labels": list(task.labels or []),
        "completed": task.completed,
        "owner_id": task.owner_id,
        "likes_count": task.likes_count,
        "liked": _liked(task, viewer_id),
        "comments": [comment_to_dict(c, viewer_id) for c in task.comments],
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


def _viewer_id(user: Optional[models.User]) -> Optional[int]:
    return user.id if user is not None else None


def _task_query(db: Session):
    return db.query(models.Task).options(
        joinedload(models.Task.comments).joinedload(models.Comment.replies)
    )


# ============== Health ==============

@app.get("/health")
def health_check():
    return {"status": "ok"}


# ============== Tasks ==============

@app.post("/articles", response_model=schemas.TaskEnvelope, status_code=status.HTTP_201_CREATED)
def create_task(
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a task owned by the current user."""
    logger.info(f"User {current_user.id} creating task: {task.title}")

    now = utc_now()
    db_task = models.Task(
        title=task.title,
        description=task.description,
        priority=task.priority.value,
        status=task.status.value,
        labels=[label.value for label in task.labels],
        completed=task.completed,
        owner_id=current_user.id,
        liked_by=[],
        created_at=now,
        updated_at=now,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"Task created successfully: id={db_task.id}")
    return {"message": "Task created successfully", "task": task_to_dict(db_task, current_user.id)}


@app.get("/articles", response_model=schemas.TaskPage)
def list_tasks(
    search: Optional[str] = Query(None, description="Substring of title, description or a label"),
    labels: Optional[str] = Query(None, description="Exact label (case-insensitive)"),
    status: Optional[str] = Query(None, description="pending, in-progress or completed"),
    priority: Optional[str] = Query(None, description="low, medium or high"),
    completed: Optional[str] = Query(None, description="'true' for completed tasks, anything else for open ones"),
    page: Optional[str] = Query(None, description="Page number (default 1)"),
    limit: Optional[str] = Query(None, description="Page size (default 10)"),
    current_user: Optional[models.User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """List all tasks, newest first, with optional filters and pagination."""
    filters = {"search": search, "labels": labels, "status": status, "priority": priority, "completed": completed}
    logger.debug(f"Listing tasks: filters={filters}, page={page}, limit={limit}")

    result = paginate_tasks(_task_query(db).all(), filters, page, limit)
    viewer_id = _viewer_id(current_user)
    result["data"] = [task_to_dict(t, viewer_id) for t in result["data"]]
    return result


@app.get("/articles/my", response_model=schemas.TaskPage)
def list_my_tasks(
    search: Optional[str] = Query(None),
    labels: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    completed: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the current user's tasks with the same filters as the global listing."""
    filters = {"search": search, "labels": labels, "status": status, "priority": priority, "completed": completed}
    logger.debug(f"User {current_user.id} listing own tasks: filters={filters}, page={page}, limit={limit}")

    owned = _task_query(db).filter(models.Task.owner_id == current_user.id).all()
    result = paginate_tasks(owned, filters, page, limit)
    result["data"] = [task_to_dict(t, current_user.id) for t in result["data"]]
    return result


@app.get("/articles/{task_id}", response_model=schemas.Task)
def get_task(
    task_id: int,
    current_user: Optional[models.User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Get a task by id, including its comments and replies."""
    task = get_task_or_404(db, task_id)
    return task_to_dict(task, _viewer_id(current_user))


@app.put("/articles/{task_id}", response_model=schemas.TaskEnvelope)
def update_task(
    task_id: int,
    task_update: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update a task (owner only)."""
    logger.debug(f"User {current_user.id} updating task {task_id}")

    task = get_owned_task(db, task_id, current_user, "update this task")

    update_data = {k: v for k, v in task_update.model_dump(exclude_unset=True).items() if v is not None}
    if "priority" in update_data:
        update_data["priority"] = update_data["priority"].value
    if "status" in update_data:
        update_data["status"] = update_data["status"].value
    if "labels" in update_data:
        update_data["labels"] = [label.value for label in update_data["labels"]]

    for key, value in update_data.items():
        setattr(task, key, value)
    task.updated_at = utc_now()

    db.commit()
    db.refresh(task)

    logger.info(f"Task {task_id} updated by user {current_user.id}: fields={sorted(update_data)}")
    return {"message": "Task updated successfully", "task": task_to_dict(task, current_user.id)}


@app.delete("/articles/{task_id}", response_model=schemas.MessageResponse)
def delete_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a task with its comments and replies (owner only)."""
    logger.debug(f"User {current_user.id} deleting task {task_id}")

    task = get_owned_task(db, task_id, current_user, "delete this task")
    db.delete(task)
    db.commit()

    logger.info(f"Task {task_id} deleted by user {current_user.id}")
    return {"message": "Task deleted"}


@app.patch("/articles/{task_id}/{action}", response_model=schemas.TaskEnvelope)
def set_task_completion(
    task_id: int,
    action: schemas.CompletionAction,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark a task complete or incomplete (owner only)."""
    logger.debug(f"User {current_user.id} marking task {task_id} as {action.value}")

    task = get_owned_task(db, task_id, current_user, "change this task")
    task.completed = action == schemas.CompletionAction.complete
    task.updated_at = utc_now()
    db.commit()
    db.refresh(task)

    logger.info(f"Task {task_id} marked as {action.value}")
    return {"message": f"Task marked as {action.value}", "task": task_to_dict(task, current_user.id)}


@app.post("/articles/{task_id}/like", response_model=schemas.TaskLikeResponse)
def like_task(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Toggle the current user's like on a task (owner only)."""
    task = get_owned_task(db, task_id, current_user, "like this task", lock=True)
    liked = toggle_entity_like(db, task, current_user.id)
    return {
        "message": "Task liked!" if liked else "Task unliked!",
        "liked": liked,
        "likes_count": task.likes_count,
    }


# ============== Comments ==============

@app.post("/articles/{task_id}/comment", response_model=schemas.CommentEnvelope, status_code=status.HTTP_201_CREATED)
def create_comment(
    task_id: int,
    comment: schemas.CommentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add a comment to a task (owner only)."""
    db_comment = comment_ops.create_comment(db, task_id, current_user, comment.text)
    return {"message": "Comment added successfully", "comment": comment_to_dict(db_comment, current_user.id)}


@app.get("/articles/{task_id}/comments", response_model=List[schemas.Comment])
def list_comments(
    task_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List a task's comments with their replies (owner only)."""
    return [comment_to_dict(c, current_user.id) for c in comment_ops.list_comments(db, task_id, current_user)]


@app.post("/articles/comments/{comment_id}/reply", response_model=schemas.ReplyEnvelope, status_code=status.HTTP_201_CREATED)
def create_reply(
    comment_id: int,
    reply: schemas.ReplyCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Reply to a comment (owner of the comment's task only)."""
    db_reply = comment_ops.create_reply(db, comment_id, current_user, reply.text)
    return {"message": "Reply added successfully", "reply": reply_to_dict(db_reply, current_user.id)}


@app.post("/articles/{task_id}/comments/{comment_id}/like", response_model=schemas.LikeResponse)
def like_comment(
    task_id: int,
    comment_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Toggle the current user's like on a comment (task owner only)."""
    comment = get_owned_comment(db, comment_id, current_user, "like comments", task_id=task_id, lock=True)
    liked = toggle_entity_like(db, comment, current_user.id)
    return {
        "message": "Comment liked!" if liked else "Comment unliked!",
        "liked": liked,
        "likes": comment.likes,
    }


@app.post("/articles/{task_id}/comments/{comment_id}/replies/{reply_id}/like", response_model=schemas.LikeResponse)
def like_reply(
    task_id: int,
    comment_id: int,
    reply_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Toggle the current user's like on a reply (task owner only)."""
    reply = get_owned_reply(
        db, reply_id, current_user, "like replies",
        comment_id=comment_id, task_id=task_id, lock=True,
    )
    liked = toggle_entity_like(db, reply, current_user.id)
    return {
        "message": "Reply liked!" if liked else "Reply unliked!",
        "liked": liked,
        "likes": reply.likes,
    }


@app.delete("/articles/comments/{comment_id}", response_model=schemas.MessageResponse)
def delete_comment(
    comment_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a comment and its replies (task owner only)."""
    comment_ops.delete_comment(db, comment_id, current_user)
    return {"message": "Comment deleted"}


@app.delete("/articles/replies/{reply_id}", response_model=schemas.MessageResponse)
def delete_reply(
    reply_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a reply (task owner only)."""
    comment_ops.delete_reply(db, reply_id, current_user)
    return {"message": "Reply deleted"}


def main():
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", "9000")))


if __name__ == "__main__":
    main()
