from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel
from starlette.exceptions import HTTPException as StarletteHTTPException
import models  # registers every table with SQLModel.metadata
from db.session import engine
from contextlib import asynccontextmanager
from api.attendance_routes import router as attendance_router
from api.admin_site_routes import router as admin_site_router
from api.background_jobs_routes import router as background_jobs_router
from core.config import ATTENDANCE_TIMEZONE, DEV_DOMAIN, LOG_LEVEL, PRODUCTION_DOMAIN
from core.exceptions import AttendanceError
from services.attendance_reminder_service import ReminderScheduler
from utils.timezone_helpers import validate_timezone
import logging

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# This file is the control center of the whole application

allowed_origins_list = [
    DEV_DOMAIN,
    PRODUCTION_DOMAIN,
    "http://localhost:3000",
    "http://127.0.0.1:5173",
]

# Remove any None values and duplicates
allowed_origins_list = sorted({origin for origin in allowed_origins_list if origin})

logger.info("CORS: Allowing origins: %s", allowed_origins_list)


# On startup create the DB tables if they don't exist and start the reminder scheduler
@asynccontextmanager
async def lifespan(app: FastAPI):
    if not validate_timezone(ATTENDANCE_TIMEZONE):
        raise ValueError(f"ATTENDANCE_TIMEZONE '{ATTENDANCE_TIMEZONE}' is not a valid IANA timezone")

    SQLModel.metadata.create_all(app.state.engine)

    scheduler = ReminderScheduler()
    scheduler.start()
    app.state.reminder_scheduler = scheduler
    yield
    scheduler.shutdown()


# Starts Fast API Up; Init
app = FastAPI(title="Attendance Service", lifespan=lifespan)
app.state.engine = engine

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error leaves as {"success": false, "error": ...}
@app.exception_handler(AttendanceError)
async def attendance_error_handler(request: Request, exc: AttendanceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, **jsonable_encoder(exc.extra)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


app.include_router(attendance_router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(admin_site_router, prefix="/admin/sites", tags=["Admin", "Site Management"])
app.include_router(background_jobs_router, prefix="/jobs", tags=["Jobs"])


@app.get("/health")
def health():
    return {"success": True, "status": "ok"}
