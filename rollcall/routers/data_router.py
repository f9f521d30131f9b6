# /rollcall/routers/data_router.py

from fastapi import APIRouter, Depends

from ..core.deps import get_current_user_id
from ..models.snapshot_model import DataSnapshot
from ..services import class_service
from ..services.database_service import DatabaseService, get_db_service

router = APIRouter()


@router.get(
    "/data",
    response_model=DataSnapshot,
    summary="Get the Full Snapshot",
    description="Every class, student and attendance record owned by the caller, plus the display name."
)
def get_all_user_data(user_id: str = Depends(get_current_user_id), db: DatabaseService = Depends(get_db_service)):
    return class_service.get_snapshot(user_id=user_id, db=db)
