import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from employee_directory.api.routes.employees import router as employees_router
from employee_directory.api.routes.experience import router as experience_router
from employee_directory.api.routes.ocr import router as ocr_router
from employee_directory.core.config import get_settings
from employee_directory.core.context import ServiceContext
from employee_directory.core.errors import DirectoryServiceError
from employee_directory.core.logging_config import configure_logging

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.context = ServiceContext(settings)
    yield
    await app.state.context.aclose()


app = FastAPI(
    title=settings.app_name,
    description="Employee directory backend: LinkedIn work-experience import, Vision OCR and Airtable-backed directory reads",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(experience_router)
app.include_router(ocr_router)
app.include_router(employees_router)


@app.exception_handler(DirectoryServiceError)
async def directory_error_handler(request: Request, exc: DirectoryServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": problems})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": f"{type(exc).__name__}: {exc}"},
    )


@app.get("/", tags=["health"])
def root():
    return {"service": "employee-directory", "status": "running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


def custom_openapi():
    """Generate OpenAPI schema with custom settings."""
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="Employee Directory API",
        version="0.1.0",
        description="Work-experience import and directory reads over Airtable",
        routes=app.routes,
    )
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi
