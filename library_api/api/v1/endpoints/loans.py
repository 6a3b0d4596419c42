from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import require_operation
from library_api.core.errors import ensure_uuid
from library_api.core.policy import Operation, can_access_user_records
from library_api.db.models import User
from library_api.schemas.loan import LoanCreate, LoanDetail, LoanWithBook
from library_api.services import loan_service

router = APIRouter(
    prefix="/api/v1/loans",
    tags=["loans"],
)


# ---- Borrow a book (any authenticated user) ----
@router.post("/", response_model=LoanDetail, status_code=status.HTTP_201_CREATED)
def create_loan(
    payload: LoanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.LOAN_CREATE)),
):
    return loan_service.borrow_book(
        db,
        book_id=str(payload.book_id),
        user_id=str(payload.user_id),
        due_date=payload.due_date,
    )


# ---- Every loan in the system (admin) ----
@router.get("/", response_model=List[LoanDetail])
def list_loans(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.LOAN_LIST_ALL)),
):
    return loan_service.list_all_loans(db)


# ---- Open loans of one user (self or admin) ----
@router.get("/user/{user_id}", response_model=List[LoanWithBook])
def list_loans_for_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.LOAN_LIST_FOR_USER)),
):
    user_id = ensure_uuid(user_id, "userId")
    if not can_access_user_records(current_user.id, current_user.role, user_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only view your own borrowed books",
        )
    return loan_service.list_open_loans_for_user(db, user_id)


# ---- Return a book ----
@router.patch("/{loan_id}/return", response_model=LoanDetail)
def return_loan(
    loan_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.LOAN_RETURN)),
):
    return loan_service.return_loan(db, loan_id)
