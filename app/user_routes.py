import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from Security.database_security import build_partial_update, safe_execute
from Security.error_handling import Conflict, NotFound, ValidationFailure
from Security.field_validation import validate_user_id, validate_user_payload

from .database import get_db
from .models import User, next_timestamp, utc_now

logger = logging.getLogger("app.users")

router = APIRouter(prefix="/api/users", tags=["users"])

DUPLICATE_EMAIL = "A user with this email address already exists"
DUPLICATE_EMAIL_OTHER = "Another user with this email address already exists"


def _body(request: Request):
    return getattr(request.state, "body", None)


def _user_id(request: Request, user_id: str) -> int:
    params = getattr(request.state, "params", None) or {}
    return validate_user_id(params.get("user_id", user_id))


def _get_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("user", user_id)
    return user


def _ensure_email_free(db: Session, email: str, exclude_id: int | None = None) -> None:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise Conflict(DUPLICATE_EMAIL_OTHER if exclude_id is not None else DUPLICATE_EMAIL)


def _is_unique_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(exc.orig).lower()


def _commit(db: Session, conflict_message: str) -> None:
    # The pre-check can race with a concurrent write; the unique index decides.
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_unique_violation(exc):
            raise Conflict(conflict_message)
        raise


@router.get("")
def list_users(db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.id.asc()).all()
    return {"success": True, "count": len(users), "data": [user.to_dict() for user in users]}


@router.get("/{user_id}")
def get_user(user_id: str, request: Request, db: Session = Depends(get_db)):
    user = _get_or_404(db, _user_id(request, user_id))
    return {"success": True, "data": user.to_dict()}


@router.post("", status_code=201)
def create_user(request: Request, db: Session = Depends(get_db)):
    data = validate_user_payload(_body(request))
    _ensure_email_free(db, data["email"])

    now = utc_now()
    user = User(**data, created_at=now, updated_at=now)
    db.add(user)
    _commit(db, DUPLICATE_EMAIL)
    db.refresh(user)
    logger.info("User created: id=%s", user.id)
    return {"success": True, "message": "User created successfully", "data": user.to_dict()}


@router.put("/{user_id}")
def replace_user(user_id: str, request: Request, db: Session = Depends(get_db)):
    record_id = _user_id(request, user_id)
    data = validate_user_payload(_body(request))
    user = _get_or_404(db, record_id)
    _ensure_email_free(db, data["email"], exclude_id=record_id)

    for name, value in data.items():
        setattr(user, name, value)
    user.updated_at = next_timestamp(user.updated_at)
    _commit(db, DUPLICATE_EMAIL_OTHER)
    db.refresh(user)
    logger.info("User replaced: id=%s", record_id)
    return {"success": True, "message": "User updated successfully", "data": user.to_dict()}


@router.patch("/{user_id}")
def update_user(user_id: str, request: Request, db: Session = Depends(get_db)):
    record_id = _user_id(request, user_id)
    data = validate_user_payload(_body(request), partial=True)
    user = _get_or_404(db, record_id)
    if "email" in data:
        _ensure_email_free(db, data["email"], exclude_id=record_id)

    update = build_partial_update(User.__tablename__, data, record_id, next_timestamp(user.updated_at))
    if update is None:
        raise ValidationFailure(error="No valid fields to update")
    safe_execute(db, update.sql, update.params, types={update.timestamp_param: User.__table__.c.updated_at.type})
    _commit(db, DUPLICATE_EMAIL_OTHER)
    db.refresh(user)
    logger.info("User updated: id=%s fields=%s", record_id, ",".join(sorted(data)))
    return {"success": True, "message": "User updated successfully", "data": user.to_dict()}


@router.delete("/{user_id}")
def delete_user(user_id: str, request: Request, db: Session = Depends(get_db)):
    user = _get_or_404(db, _user_id(request, user_id))
    db.delete(user)
    _commit(db, DUPLICATE_EMAIL)
    logger.info("User deleted: id=%s", user.id)
    return {"success": True, "message": "User deleted successfully"}
