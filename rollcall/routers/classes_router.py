# /rollcall/routers/classes_router.py

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from ..core.deps import get_current_user_id
from ..models import attendance_model, class_model, report_model, snapshot_model, student_model
from ..services import class_service
from ..services.database_service import DatabaseService, get_db_service

router = APIRouter()

# --- CLASS COLLECTION ENDPOINTS (/api/classes) ---

@router.post("", response_model=snapshot_model.ClassCreatedResponse, status_code=status.HTTP_201_CREATED, summary="Create a New Class")
def create_new_class(
    class_create: class_model.ClassCreate,
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service),
):
    return class_service.create_class(class_data=class_create, user_id=user_id, db=db)

# --- INDIVIDUAL CLASS RESOURCE ENDPOINTS (/api/classes/{class_id}) ---

@router.delete("/{class_id}", response_model=snapshot_model.ClassListResponse, summary="Delete a Class and Everything in It")
def delete_class(class_id: str, user_id: str = Depends(get_current_user_id), db: DatabaseService = Depends(get_db_service)):
    return class_service.delete_class(class_id=class_id, user_id=user_id, db=db)

@router.get("/{class_id}/report", response_model=report_model.ClassReport, summary="Get the Attendance Report for a Class")
def get_class_report(class_id: str, user_id: str = Depends(get_current_user_id), db: DatabaseService = Depends(get_db_service)):
    return class_service.get_class_report(class_id=class_id, user_id=user_id, db=db)

@router.get("/{class_id}/export", summary="Export Attendance as CSV", response_class=StreamingResponse)
def export_attendance_csv(class_id: str, user_id: str = Depends(get_current_user_id), db: DatabaseService = Depends(get_db_service)):
    file_name, csv_string = class_service.export_attendance_csv(class_id=class_id, user_id=user_id, db=db)
    return StreamingResponse(iter([csv_string]), media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={file_name}"})

# --- STUDENT SUB-RESOURCE ENDPOINTS ---

@router.post("/{class_id}/students", response_model=snapshot_model.StudentEnrolledResponse, status_code=status.HTTP_201_CREATED, summary="Enroll a Student")
def enroll_student(
    class_id: str,
    student_create: student_model.StudentCreate,
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service),
):
    return class_service.enroll_student(class_id=class_id, student_data=student_create, user_id=user_id, db=db)

@router.delete("/{class_id}/students/{student_id}", response_model=snapshot_model.StudentDroppedResponse, summary="Drop a Student from a Class")
def drop_student(class_id: str, student_id: str, user_id: str = Depends(get_current_user_id), db: DatabaseService = Depends(get_db_service)):
    return class_service.drop_student(class_id=class_id, student_id=student_id, user_id=user_id, db=db)

# --- ATTENDANCE SUB-RESOURCE ENDPOINTS ---

@router.post("/{class_id}/attendance", response_model=snapshot_model.AttendanceRecordedResponse, summary="Record Attendance for a Date")
def record_attendance(
    class_id: str,
    submission: attendance_model.AttendanceSubmission,
    user_id: str = Depends(get_current_user_id),
    db: DatabaseService = Depends(get_db_service),
):
    return class_service.record_attendance(class_id=class_id, submission=submission, user_id=user_id, db=db)
