from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import require_operation
from library_api.core.policy import Operation
from library_api.db.models import User
from library_api.schemas.stats import DashboardSnapshot
from library_api.services.dashboard_service import build_dashboard_snapshot

router = APIRouter(
    prefix="/api/v1/stats",
    tags=["stats"],
)


@router.get("/dashboard", response_model=DashboardSnapshot)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operation(Operation.DASHBOARD_VIEW)),
):
    """
    Catalog and borrowing counters plus recent and overdue loans.

    Meant for polling; the numbers are a best-effort snapshot.
    """
    return build_dashboard_snapshot(db)
