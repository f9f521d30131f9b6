# /rollcall/services/dashboard_service.py

import logging

# --- Core Imports ---
# Import the Pydantic model to ensure our output matches the data contract.
from ..models.dashboard_model import DashboardSummary
from . import stats_service
from .database_service import DatabaseService

logger = logging.getLogger(__name__)

# --- Core Public Function ---

def get_summary_data(user_id: str, db: DatabaseService) -> DashboardSummary:
    """
    Calculates the dashboard totals for one instructor.

    Class, student and session counts are summed from the per-class cached
    stats. The average attendance rate is pooled over every record the
    instructor owns rather than averaged per class.

    Args:
        user_id: The verified id of the instructor.
        db: An instance of the DatabaseService, provided by dependency injection.

    Returns:
        A DashboardSummary Pydantic object containing the calculated counts.
    """
    try:
        classes = db.get_classes_by_owner(user_id)
        records = db.get_attendance_for_owner(user_id)
        present = sum(1 for record in records if record.present)

        return DashboardSummary(
            classCount=len(classes),
            studentCount=sum(c.student_count for c in classes),
            sessionCount=sum(c.session_count for c in classes),
            averageAttendanceRate=stats_service.attendance_rate(present, len(records)),
        )
    except Exception:
        logger.exception("Error calculating dashboard summary for %s", user_id)
        # Re-raise so the error handler turns it into a 500.
        raise
