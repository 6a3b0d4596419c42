from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import require_operation
from library_api.core.config import settings
from library_api.core.errors import ConflictError, InvalidStateError, NotFoundError, ensure_uuid
from library_api.core.logging import get_logger
from library_api.core.policy import Operation
from library_api.core.security import hash_password
from library_api.db.models import User
from library_api.schemas.loan import UserWithLoans
from library_api.schemas.user import UserRead, UserCreate
from library_api.services import loan_service

logger = get_logger("api.users")

# Every route in this router is reserved to administrators
router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
    dependencies=[Depends(require_operation(Operation.USER_MANAGE))],
)


def _get_user_or_404(db: Session, user_id: str) -> User:
    user_id = ensure_uuid(user_id, "userId")
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def _ensure_email_free(db: Session, email: str) -> None:
    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")


@router.get("/", response_model=List[UserRead])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.created_at.desc()).all()


@router.get("/{user_id}", response_model=UserWithLoans)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return _get_user_or_404(db, user_id)


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    _ensure_email_free(db, payload.email)

    user = User(
        email=payload.email,
        name=payload.name,
        hashed_password=hash_password(payload.password),
        role=payload.role,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against another insert with the same email
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(user)

    logger.info(
        "user_created",
        extra={
            "operation": "user_create",
            "resource": "user",
            "target_user_id": user.id,
            "role": user.role.value,
            "status_code": 201,
        },
    )
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    user = _get_user_or_404(db, user_id)

    if user.email == settings.BUILTIN_ADMIN_EMAIL:
        raise InvalidStateError("Built-in admin cannot be deleted")

    loan_service.delete_user(db, user.id)

    logger.info(
        "user_deleted",
        extra={
            "operation": "user_delete",
            "resource": "user",
            "target_user_id": user_id,
            "status_code": 204,
        },
    )
    return None
