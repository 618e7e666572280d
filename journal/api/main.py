"""
FastAPI application entry point.
"""
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from config.settings import get_journal_config
from journal.api.routes import health, positions
from journal.core.exceptions import (
    AuthenticationError, JournalError, NotFoundError, ValidationError
)
from journal.utils.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Trade Journal API",
    description="Personal trading journal: positions, operations and P&L",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_journal_config()['api']['cors_origins'],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(positions.router, prefix="/positions", tags=["Positions"])

# ========== ERROR HANDLERS ==========

@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"message": exc.message},
        headers={"WWW-Authenticate": "Bearer"}
    )

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"message": exc.message})

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Request rejected", path=request.url.path, reason=exc.message)
    return JSONResponse(status_code=400, content={"message": exc.message})

@app.exception_handler(JournalError)
async def journal_error_handler(request: Request, exc: JournalError):
    return JSONResponse(status_code=400, content={"message": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request data"
    return JSONResponse(
        status_code=400,
        content={"message": message, "errors": jsonable_encoder(errors)}
    )

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"message": "Database error"})

@app.get("/")
def root():
    """Root endpoint."""
    return {
        "name": "Trade Journal API",
        "version": "1.0.0",
        "docs": "/docs"
    }
