# /rollcall/models/class_model.py

from datetime import datetime

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    """The payload for creating a class. The name is trimmed by the service."""
    name: str = Field(..., description="Display name of the class.")


class ClassStats(BaseModel):
    """
    Derived statistics for one class. Always computed on the server from the
    class's students and attendance records; never accepted from a client.
    """
    studentCount: int = Field(0, ge=0)
    sessionCount: int = Field(0, ge=0, description="Number of distinct dates with attendance.")
    attendanceRate: int = Field(0, ge=0, le=100, description="Percent of records marked present.")


class ClassSummary(BaseModel):
    """A class as it appears in every classes[] list returned by the API."""
    id: str
    ownerUserId: str
    name: str
    createdAt: datetime
    stats: ClassStats
