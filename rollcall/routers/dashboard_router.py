# /rollcall/routers/dashboard_router.py

# --- Core FastAPI Imports ---
from fastapi import APIRouter, Depends

# --- Service and Model Imports ---
from ..core.deps import get_current_user_id
from ..services import dashboard_service
from ..services.database_service import DatabaseService, get_db_service
from ..models.dashboard_model import DashboardSummary

# --- APIRouter Instance ---
router = APIRouter()

# --- Endpoint Definition ---
@router.get(
    "/summary",
    response_model=DashboardSummary,
    summary="Get Dashboard Summary",
    description="Retrieves the totals for the instructor's home screen."
)
def get_dashboard_summary(
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service)
):
    """
    The thin router layer: authenticate, then delegate to the service.
    """
    return dashboard_service.get_summary_data(user_id=user_id, db=db)
