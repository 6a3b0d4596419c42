from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.core.logging import user_id_ctx
from library_api.core.policy import Operation, can_perform
from library_api.core.security import decode_access_token
from library_api.db.models import User


# Must match the login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the user behind the bearer token.
    Raises 401 when the token cannot be validated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user: User | None = db.query(User).filter(User.id == payload["user_id"]).first()
    if user is None:
        raise credentials_exception

    # Picked up by the JSON log formatter
    user_id_ctx.set(user.id)

    return user


def require_operation(operation: Operation):
    """
    Dependency factory: the current user's role must be allowed to perform
    ``operation`` according to the policy table.
    """
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not can_perform(current_user.role, operation):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return dependency
