"""
FastAPI main application for the Bookshelf API.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import Body, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.config import config as api_config
from api.errors import APIError
from api.handlers import DetailEndpointHandler, ListEndpointHandler
from api.models import ERROR_RESPONSES, HealthResponse
from api.resources import BOOKS, USERS, ResourceDefinition
from store.database import MongoDBManager
from store.models import BookRecord, UserRecord
from utilities.config import config
from utilities.logger import get_logger, setup_logging

logger = get_logger(__name__)

PAGINATION_HEADERS = ["X-Total-Pages-Count", "X-Page-Index", "X-Per-Page", "X-Total-Count"]

# Global database manager
db_manager: MongoDBManager = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting Bookshelf API")

    global db_manager
    manager = MongoDBManager(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        counters_collection=config.counters_collection
    )
    try:
        await manager.connect()
        await manager.create_indexes(BOOKS.collection, USERS.collection)
        db_manager = manager
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down Bookshelf API")
    await manager.disconnect()
    db_manager = None


app = FastAPI(
    title=api_config.api_title,
    description=api_config.api_description,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
    expose_headers=PAGINATION_HEADERS,
)


# Exception handlers
@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    """Render handler errors as client-error responses."""
    logger.warning(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        status_code=exc.status_code,
        payload=exc.payload
    )
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Render unparseable request bodies in the parameter error shape."""
    errors = [f"{error['loc'][0]}: {error['msg']}" for error in exc.errors()]
    logger.warning(
        "Malformed request",
        method=request.method,
        path=request.url.path,
        errors=errors
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    content = {"message": "Internal server error"}
    if api_config.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def _manager() -> MongoDBManager:
    if not db_manager:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database service not available"
        )
    return db_manager


def list_handler(resource: ResourceDefinition) -> ListEndpointHandler:
    repository = _manager().register(resource.collection, resource.record_model)
    return ListEndpointHandler(resource, repository)


def detail_handler(resource: ResourceDefinition) -> DetailEndpointHandler:
    repository = _manager().register(resource.collection, resource.record_model)
    return DetailEndpointHandler(resource, repository)


def _unwrap(payload: Dict[str, Any], key: str) -> Any:
    """Accept both ``{"book": {...}}`` and a bare attribute object."""
    if key in payload:
        return payload[key]
    return payload


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if db_manager:
        health_info = await db_manager.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=api_config.api_version,
        database_status=db_status
    )


# Books endpoints
@app.get("/books", tags=["Books"], response_model=List[BookRecord], responses=ERROR_RESPONSES)
async def list_books(request: Request):
    """
    List books with filtering and pagination.

    - **page**: Page number (starts from 1)
    - **page_size**: Books per page (default 15)
    - **name**, **original_name**: Exact title filters
    - **user_id**, **author_id**, **group_id**, **catalog_id**: Id filters
    - **range[start]**, **range[end]**: Creation time bounds (ISO 8601)
    """
    result = await list_handler(BOOKS).handle(request.query_params)
    return JSONResponse(content=result.body, headers=result.headers)


@app.get("/books/{book_id}", tags=["Books"], response_model=BookRecord, responses=ERROR_RESPONSES)
async def show_book(book_id: str):
    """Get a single book by id."""
    return await detail_handler(BOOKS).show(book_id)


@app.post("/books", status_code=status.HTTP_201_CREATED, tags=["Books"],
          response_model=BookRecord, responses=ERROR_RESPONSES)
async def create_book(payload: Dict[str, Any] = Body(...)):
    """Create a book from name, original_name, catalog_id, author_id, user_id and group_id."""
    return await detail_handler(BOOKS).create(_unwrap(payload, BOOKS.key))


@app.patch("/books", tags=["Books"], response_model=BookRecord, responses=ERROR_RESPONSES)
async def update_book(payload: Dict[str, Any] = Body(...)):
    """Update the book identified by ``id`` with the attributes under ``book``."""
    return await detail_handler(BOOKS).update(payload.get("id"), payload.get(BOOKS.key))


# Users endpoints
@app.get("/users", tags=["Users"], response_model=List[UserRecord], responses=ERROR_RESPONSES)
async def list_users(request: Request):
    """
    List users with filtering and pagination.

    - **page**: Page number (starts from 1)
    - **page_size**: Users per page (default 12)
    - **name**, **email**, **group_id**: Exact match filters
    - **range[start]**, **range[end]**: Creation time bounds (ISO 8601)
    """
    result = await list_handler(USERS).handle(request.query_params)
    return JSONResponse(content=result.body, headers=result.headers)


@app.get("/users/{user_id}", tags=["Users"], response_model=UserRecord, responses=ERROR_RESPONSES)
async def show_user(user_id: str):
    """Get a single user by id."""
    return await detail_handler(USERS).show(user_id)


@app.post("/users", status_code=status.HTTP_201_CREATED, tags=["Users"],
          response_model=UserRecord, responses=ERROR_RESPONSES)
async def create_user(payload: Dict[str, Any] = Body(...)):
    """Create a user from name, email and group_id."""
    return await detail_handler(USERS).create(_unwrap(payload, USERS.key))


@app.patch("/users", tags=["Users"], response_model=UserRecord, responses=ERROR_RESPONSES)
async def update_user(payload: Dict[str, Any] = Body(...)):
    """Update the user identified by ``id`` with the attributes under ``user``."""
    return await detail_handler(USERS).update(payload.get("id"), payload.get(USERS.key))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
