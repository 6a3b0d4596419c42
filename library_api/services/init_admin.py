from sqlalchemy.orm import Session

from library_api.core.config import settings
from library_api.core.logging import get_logger
from library_api.core.security import hash_password
from library_api.db.models import User, UserRole

logger = get_logger("services.init_admin")


def ensure_builtin_admin(db: Session) -> User:
    admin = db.query(User).filter(User.email == settings.BUILTIN_ADMIN_EMAIL).first()
    if admin:
        return admin

    admin = User(
        email=settings.BUILTIN_ADMIN_EMAIL,
        name="Admin User",
        hashed_password=hash_password(settings.BUILTIN_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)

    logger.info(
        "builtin_admin_created",
        extra={"operation": "bootstrap", "resource": "user", "email": admin.email},
    )
    return admin
