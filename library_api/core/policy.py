from enum import Enum

from library_api.db.models import UserRole


class Operation(str, Enum):
    LOAN_CREATE = "loan:create"
    LOAN_LIST_ALL = "loan:list_all"
    LOAN_LIST_FOR_USER = "loan:list_for_user"
    LOAN_RETURN = "loan:return"
    DASHBOARD_VIEW = "dashboard:view"
    AUTHOR_WRITE = "author:write"
    BOOK_WRITE = "book:write"
    USER_MANAGE = "user:manage"


# Roles allowed to perform each operation. ADMIN is allowed everywhere.
PERMISSIONS: dict[Operation, set[UserRole]] = {
    Operation.LOAN_CREATE: {UserRole.USER, UserRole.ADMIN},
    Operation.LOAN_LIST_ALL: {UserRole.ADMIN},
    Operation.LOAN_LIST_FOR_USER: {UserRole.USER, UserRole.ADMIN},
    Operation.LOAN_RETURN: {UserRole.USER, UserRole.ADMIN},
    Operation.DASHBOARD_VIEW: {UserRole.USER, UserRole.ADMIN},
    Operation.AUTHOR_WRITE: {UserRole.ADMIN},
    Operation.BOOK_WRITE: {UserRole.ADMIN},
    Operation.USER_MANAGE: {UserRole.ADMIN},
}


def can_perform(actor_role: UserRole, operation: Operation) -> bool:
    if actor_role == UserRole.ADMIN:
        return True
    return actor_role in PERMISSIONS.get(operation, set())


def can_access_user_records(actor_id: str, actor_role: UserRole, owner_id: str) -> bool:
    """Self-or-admin rule for per-user loan history."""
    return actor_role == UserRole.ADMIN or actor_id == owner_id
