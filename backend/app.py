import logging
from contextlib import asynccontextmanager
from datetime import date, datetime

import httpx
from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from capture import capture_blade, capture_engel
from config import Settings, get_settings
from db import create_db_and_tables, get_session
from extraction import ExtractionFailure, VisionExtractionClient
from log_store import LogStore, StoreError
from schemas import (
    BladeCaptureResponse,
    BladeLogResponse,
    EngelCaptureResponse,
    ErrorResponse,
    ProductionLogResponse,
    TodaySummaryResponse,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check configuration, initialize database and open the vision API client."""
    settings = get_settings()
    settings.validate()
    create_db_and_tables()
    logger.info("Database initialized")

    http_client = httpx.AsyncClient(timeout=settings.vision_timeout)
    app.state.extractor = VisionExtractionClient.from_settings(http_client, settings)
    logger.info(f"Vision API key: {'configured' if settings.claude_api_key else 'missing'}")
    logger.info(f"Extraction failure policy: {settings.on_extraction_failure}")
    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("Closed vision API client")


# Create FastAPI app
app = FastAPI(title="Production Logger API", version="1.0.0", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tablets on the shop floor hit the API directly
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_extractor(request: Request) -> VisionExtractionClient:
    """Vision client opened in the lifespan."""
    return request.app.state.extractor


def get_log_store(session: Session = Depends(get_session)) -> LogStore:
    return LogStore(session)


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def is_file_upload(photo: UploadFile | str | None) -> bool:
    """A plain text field named photo counts as no upload."""
    return photo is not None and not isinstance(photo, str) and bool(photo.filename)


def parse_day(value: str | None) -> date:
    if not value:
        return datetime.now().date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        logger.error(f"Invalid date format: {str(e)}")
        raise HTTPException(
            status_code=400, detail="Invalid date format. Use YYYY-MM-DD"
        ) from e


@app.post("/api/engel/capture", response_model=EngelCaptureResponse)
async def engel_capture(
    photo: UploadFile | str | None = File(None),
    shift: str | None = Form(None),
    operator: str | None = Form(None),
    extractor: VisionExtractionClient = Depends(get_extractor),
    store: LogStore = Depends(get_log_store),
    settings: Settings = Depends(get_settings),
):
    """Read an Engel molding screen photo and log the production counters."""
    if not is_file_upload(photo):
        return error_response(400, "No photo uploaded")

    logger.info(f"Engel capture request (operator={operator or 'Unknown'}, shift={shift or 'day'})")
    try:
        result = await capture_engel(photo, extractor, store, settings, operator=operator, shift=shift)
    except ExtractionFailure as e:
        logger.error(f"Engel extraction failed: {e.message} ({e.details})")
        return error_response(500, e.message, e.details)
    except StoreError as e:
        return error_response(500, "Could not save production entry", str(e))

    return EngelCaptureResponse(id=result.id, data=result.data, fallback=result.fallback)


@app.post("/api/blade/capture", response_model=BladeCaptureResponse)
async def blade_capture(
    photo: UploadFile | str | None = File(None),
    operator: str | None = Form(None),
    extractor: VisionExtractionClient = Depends(get_extractor),
    store: LogStore = Depends(get_log_store),
    settings: Settings = Depends(get_settings),
):
    """Read a coil label photo and log the steel used and blades cut."""
    if not is_file_upload(photo):
        return error_response(400, "No photo uploaded")

    logger.info(f"Blade capture request (operator={operator or 'Unknown'})")
    try:
        result = await capture_blade(photo, extractor, store, settings, operator=operator)
    except ExtractionFailure as e:
        logger.error(f"Coil label extraction failed: {e.message} ({e.details})")
        return error_response(500, e.message, e.details)
    except StoreError as e:
        return error_response(500, "Could not save blade entry", str(e))

    return BladeCaptureResponse(id=result.id, data=result.data, fallback=result.fallback)


@app.get("/api/summary/today", response_model=TodaySummaryResponse)
async def summary_today(store: LogStore = Depends(get_log_store)):
    """Totals across both logs for the current local date."""
    try:
        summary = await run_in_threadpool(store.aggregate_today)
    except StoreError as e:
        return error_response(500, "Could not compute today's summary", str(e))
    return TodaySummaryResponse(**summary)


@app.get("/api/production/logs", response_model=list[ProductionLogResponse])
def production_logs(
    date: str = Query(None, description="Day to list (YYYY-MM-DD), defaults to today"),
    store: LogStore = Depends(get_log_store),
):
    """Production log rows for one day."""
    day = parse_day(date)
    try:
        rows = store.list_production(day)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    logger.info(f"Found {len(rows)} production entries for {day}")
    return rows


@app.get("/api/blade/logs", response_model=list[BladeLogResponse])
def blade_logs(
    date: str = Query(None, description="Day to list (YYYY-MM-DD), defaults to today"),
    store: LogStore = Depends(get_log_store),
):
    """Blade log rows for one day, with coil ids decoded."""
    day = parse_day(date)
    try:
        rows = store.list_blade(day)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    logger.info(f"Found {len(rows)} blade entries for {day}")
    return rows


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Production Logger API", "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    logger.info(f"Production logger running on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port)
