# /rollcall/models/dashboard_model.py

# --- Core Imports ---
from pydantic import BaseModel, Field

# --- Model Definition ---

class DashboardSummary(BaseModel):
    """
    Defines the data contract for the response of the dashboard summary endpoint.
    These are the totals shown on the instructor's home screen.
    """

    classCount: int = Field(
        ...,
        description="The total number of classes owned by the user.",
        examples=[4]
    )

    studentCount: int = Field(
        ...,
        description="The total number of students enrolled across all of the user's classes.",
        examples=[112]
    )

    sessionCount: int = Field(
        ...,
        description="The number of attendance sessions taken across all classes.",
        examples=[36]
    )

    averageAttendanceRate: int = Field(
        ...,
        ge=0,
        le=100,
        # Records from every class are pooled, so larger classes weigh more.
        description="Percent of all attendance records, across every class, marked present.",
        examples=[87]
    )
