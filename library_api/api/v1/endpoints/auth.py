from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import get_current_user
from library_api.core.errors import ConflictError
from library_api.core.logging import get_logger
from library_api.core.security import hash_password, verify_password, create_access_token
from library_api.db.models import User, UserRole
from library_api.schemas.auth import AuthResponse, RegisterRequest
from library_api.schemas.user import UserRead

logger = get_logger("api.auth")

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"],
)


def _issue_token(user: User) -> AuthResponse:
    access_token = create_access_token(
        user_id=user.id,
        email=user.email,
        role=user.role.value,
    )
    return AuthResponse(access_token=access_token, user=UserRead.model_validate(user))


def _ensure_email_free(db: Session, email: str) -> None:
    if db.query(User.id).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: RegisterRequest,
    db: Session = Depends(get_db),
):
    _ensure_email_free(db, payload.email)

    # Self-registration always yields a regular user
    user = User(
        email=payload.email,
        name=payload.name,
        hashed_password=hash_password(payload.password),
        role=UserRole.USER,
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
        "user_registered",
        extra={
            "operation": "auth_register",
            "resource": "user",
            "email": user.email,
            "status_code": 201,
        },
    )

    return _issue_token(user)


@router.post("/login", response_model=AuthResponse)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    # OAuth2 password flow: the username field carries the email
    email = form_data.username
    user = db.query(User).filter(User.email == email).first()

    client_ip = request.client.host if request.client else None

    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(
            "login_failed",
            extra={
                "operation": "auth_login",
                "resource": "user",
                "email": email,
                "status_code": 401,
                "ip": client_ip,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(
        "login_success",
        extra={
            "operation": "auth_login",
            "resource": "user",
            "email": email,
            "status_code": 200,
            "ip": client_ip,
        },
    )

    return _issue_token(user)


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user
