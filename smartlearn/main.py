"""
Main FastAPI application for the SmartLearn transactional core.
Serves PayHere checkout/notify, enrollments, certificates, deliveries,
progress, student listings, health and metrics.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smartlearn.core.config import settings
from smartlearn.core.errors import DomainError
from smartlearn.core.logging import configure_logging
from smartlearn.api.routes import certificates, enrollments, files, health, instructor, payhere, progress, student
from smartlearn.utils.metrics import router as metrics_router

configure_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="SmartLearn API",
    description="Payments, enrollments, certificates and deliveries for SmartLearn LMS",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "request_failed",
            extra={"path": request.url.path, "status_code": exc.status_code, "error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    message = f"{field}: {first.get('msg', 'Invalid request')}"
    return JSONResponse(status_code=400, content={"message": message, "code": "VALIDATION_ERROR"})


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(payhere.router)
app.include_router(enrollments.router)
app.include_router(instructor.router)
app.include_router(certificates.router)
app.include_router(progress.router)
app.include_router(student.router)
app.include_router(files.router)
app.include_router(metrics_router)
