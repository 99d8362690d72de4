from typing import Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from nebresult.config.logger import get_logger
from nebresult.config.settings import settings
from nebresult.services.report_service import ReportService, ReportServiceError
from nebresult.services.storage import Storage, StorageError

logger = get_logger("api")

app = FastAPI(title="NEB Result API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class MarkEntryPayload(BaseModel):
    student_id: int
    theory: Optional[float] = None
    practical: Optional[float] = None


class BulkMarksPayload(BaseModel):
    exam_id: int
    subject_id: int
    marks_data: List[MarkEntryPayload] = Field(min_length=1)


class AttendanceEntryPayload(BaseModel):
    student_id: int
    status: str


class AttendancePayload(BaseModel):
    date: str
    attendance_data: List[AttendanceEntryPayload] = Field(min_length=1)


def get_storage(request: Request) -> Iterator[Storage]:
    storage = Storage(getattr(request.app.state, "db_path", None))
    try:
        yield storage
    finally:
        storage.close()


def get_report_service(storage: Storage = Depends(get_storage)) -> ReportService:
    return ReportService(storage)


def _required_exam_id(exam_id: Optional[int]) -> int:
    if exam_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="exam_id is required")
    return exam_id


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception while serving %s %s", request.method, request.url.path, exc_info=exc)
    detail = str(exc) if settings.debug else "INTERNAL_SERVER_ERROR"
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": detail})


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/reports/student/{student_id}")
def student_gradesheet(
    student_id: int,
    exam_id: Optional[int] = None,
    service: ReportService = Depends(get_report_service),
) -> Dict:
    try:
        return service.student_gradesheet(student_id, _required_exam_id(exam_id)).to_dict()
    except ReportServiceError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@app.get("/reports/class/{class_level}")
def class_gradesheets(
    class_level: int,
    exam_id: Optional[int] = None,
    faculty: Optional[str] = None,
    year: Optional[str] = None,
    service: ReportService = Depends(get_report_service),
) -> List[Dict]:
    try:
        reports = service.class_gradesheets(class_level, _required_exam_id(exam_id), faculty=faculty, year=year)
    except ReportServiceError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [report.to_dict() for report in reports]


@app.post("/marks/bulk")
def enter_bulk_marks(payload: BulkMarksPayload, storage: Storage = Depends(get_storage)) -> Dict:
    try:
        saved = storage.enter_bulk_marks(
            payload.exam_id,
            payload.subject_id,
            [entry.model_dump() for entry in payload.marks_data],
        )
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"status": "saved", "count": saved}


@app.get("/attendance")
def get_attendance(
    date: Optional[str] = None,
    class_level: Optional[int] = None,
    faculty: Optional[str] = None,
    storage: Storage = Depends(get_storage),
) -> List[Dict]:
    try:
        return storage.get_attendance(date, class_level, faculty)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@app.post("/attendance")
def save_attendance(payload: AttendancePayload, storage: Storage = Depends(get_storage)) -> Dict:
    try:
        saved = storage.save_attendance(payload.date, [entry.model_dump() for entry in payload.attendance_data])
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"status": "saved", "count": saved}
