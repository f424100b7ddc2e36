"""
API Routes — Endpoint Definitions

Note: "user" in these endpoints refers to a user of this application,
not an InfluxDB user. Real code should authorize the caller and check
that the user_id matches the authorization.
"""

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from influx_starter.config import Settings, get_settings
from influx_starter.storage import ErrorKind, InfluxDBClientError, InfluxStore, load_config
from influx_starter.storage.config import ALERT_EVERY, DOWNSAMPLE_EVERY
from influx_starter.storage.flux import alert_task_name

from .schemas import (
    HealthResponse,
    IngestRequest,
    IngestResponse,
    QueryResponse,
    TaskResponse,
    UserRequest,
)
from .services import (
    check_database_health,
    create_alert_task,
    create_downsample_task,
    ingest_point,
    query_downsampled,
)


logger = logging.getLogger(__name__)

router = APIRouter()


ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.UNKNOWN: status.HTTP_502_BAD_GATEWAY,
}

INGEST_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "error: insufficient permission",
    ErrorKind.NOT_FOUND: "Bucket name does not exist",
}


def to_http_error(
    error: InfluxDBClientError,
    messages: Optional[Dict[ErrorKind, str]] = None,
) -> HTTPException:
    """Translate a storage failure into an HTTPException by its kind."""
    detail = (messages or {}).get(error.kind, f"Database error: {error.kind.value}")
    return HTTPException(status_code=ERROR_STATUS[error.kind], detail=detail)


# Dependency for database client
def get_store(settings: Settings = Depends(get_settings)):
    """
    Dependency that provides a connected InfluxStore.

    One client per request, closed when the response is sent.
    """
    store = InfluxStore(load_config(settings))
    try:
        store.connect()
    except InfluxDBClientError as e:
        raise to_http_error(e)
    try:
        yield store
    finally:
        store.disconnect()


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_200_OK,
    responses={
        401: {"description": "Token lacks permission"},
        404: {"description": "Bucket does not exist"},
        422: {"description": "Validation error (invalid payload)"},
        503: {"description": "Database unavailable"},
    },
    summary="Ingest a single value",
    description="Writes one point tagged with user_id to InfluxDB.",
)
async def ingest(
    request: IngestRequest,
    store: InfluxStore = Depends(get_store),
) -> IngestResponse:
    """
    Ingest a value for a user.

    Where a bucket is similar to a database, a measurement is similar to
    a table and a field and its value to a column and value.
    """
    try:
        timestamp = await ingest_point(
            store,
            user_id=request.user_id,
            measurement=request.measurement,
            value=request.field1,
        )
    except InfluxDBClientError as e:
        logger.error(f"Ingest failed ({e.kind.value}): {e}")
        raise to_http_error(e, INGEST_MESSAGES)

    return IngestResponse(
        user_id=request.user_id,
        measurement=request.measurement,
        field1=request.field1,
        timestamp=timestamp,
    )


@router.post(
    "/query",
    response_model=QueryResponse,
    status_code=status.HTTP_200_OK,
    summary="Latest downsampled values",
    description="Returns the latest min, max and mean values of a user within the last 24 hours.",
)
async def query(
    request: UserRequest,
    store: InfluxStore = Depends(get_store),
) -> QueryResponse:
    """Always answers 200; a failed query is reported in `error`."""
    rows, error = await query_downsampled(store, request.user_id)
    if error is not None:
        return QueryResponse(
            status="error",
            user_id=request.user_id,
            count=0,
            rows=[],
            error=error.kind.value,
        )
    return QueryResponse(
        status="ok",
        user_id=request.user_id,
        count=len(rows),
        rows=rows,
    )


@router.post(
    "/setup",
    response_model=TaskResponse,
    status_code=status.HTTP_200_OK,
    summary="Register a downsampling task",
    description="Creates a task computing max, min and mean of a user's data every 5 minutes.",
)
async def setup(
    request: UserRequest,
    store: InfluxStore = Depends(get_store),
) -> TaskResponse:
    try:
        task = await create_downsample_task(store, request.user_id)
    except InfluxDBClientError as e:
        logger.error(f"Task setup failed ({e.kind.value}): {e}")
        raise to_http_error(e)

    return TaskResponse(
        task_id=task.id,
        name=task.name,
        every=task.every or DOWNSAMPLE_EVERY,
        influx_status=str(task.status) if task.status is not None else None,
    )


@router.post(
    "/tasks",
    response_model=TaskResponse,
    status_code=status.HTTP_200_OK,
    summary="Register a zero-value alert task",
    description=(
        "Recreates the processed bucket, then registers a task copying a "
        "user's zero-valued points into it every minute."
    ),
)
async def tasks(
    request: UserRequest,
    store: InfluxStore = Depends(get_store),
) -> TaskResponse:
    try:
        body = await create_alert_task(store, request.user_id)
    except InfluxDBClientError as e:
        logger.error(f"Task registration failed ({e.kind.value}): {e}")
        raise to_http_error(e)

    return TaskResponse(
        task_id=body.get("id"),
        name=body.get("name") or alert_task_name(request.user_id),
        every=body.get("every") or ALERT_EVERY,
        influx_status=body.get("status"),
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Checks API and database health.",
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    store = InfluxStore(load_config(settings))
    try:
        is_healthy = await check_database_health(store)
    finally:
        store.disconnect()

    if is_healthy:
        return HealthResponse(
            status="healthy",
            database="connected",
            message="All systems operational. InfluxDB connected.",
        )
    return HealthResponse(
        status="degraded",
        database="unavailable",
        message="InfluxDB did not answer the ping.",
    )
