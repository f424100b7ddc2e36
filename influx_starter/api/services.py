"""
API Services — Orchestration Layer

Builds points, queries and task scripts and hands them to the store.
Store calls block on network I/O, so they run in the threadpool and the
event loop keeps serving other requests meanwhile.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from influxdb_client.domain.task import Task
from starlette.concurrency import run_in_threadpool

from influx_starter.storage import InfluxDBClientError, InfluxStore, build_user_point
from influx_starter.storage.flux import (
    alert_task_name,
    downsample_task_flux,
    last_downsampled_query,
    zero_value_alert_flux,
)


logger = logging.getLogger(__name__)


async def ingest_point(
    store: InfluxStore,
    user_id: str,
    measurement: str,
    value: float,
) -> datetime:
    """
    Write one point tagged with the user id.

    Returns:
        The timestamp the point was written with

    Raises:
        InfluxDBClientError: If the write fails
    """
    timestamp = datetime.now(timezone.utc)
    await run_in_threadpool(store.write_point, build_user_point(user_id, measurement, value, timestamp))
    return timestamp


async def query_downsampled(
    store: InfluxStore,
    user_id: str,
) -> Tuple[List[Dict[str, Any]], Optional[InfluxDBClientError]]:
    """
    Fetch the latest downsampled values of a user.

    Query failures are logged and returned instead of raised.

    Returns:
        (rows, error) where error is None on success
    """
    query = last_downsampled_query(store.config.bucket, user_id)
    try:
        rows = await run_in_threadpool(store.query_rows, query)
    except InfluxDBClientError as e:
        logger.error(f"Query for user {user_id!r} failed ({e.kind.value}): {e}")
        return [], e
    return rows, None


async def create_downsample_task(store: InfluxStore, user_id: str) -> Task:
    """
    Register the 5-minute max/min/mean downsampling task for a user.

    Raises:
        InfluxDBClientError: If task creation fails
    """
    flux = downsample_task_flux(store.config.bucket, user_id)
    return await run_in_threadpool(store.create_task, flux)


async def create_alert_task(store: InfluxStore, user_id: str) -> Dict[str, Any]:
    """
    Reset the processed bucket, then register the zero-value alert task.

    The bucket reset completes before the task is posted, so the task
    never runs against a bucket that is about to be deleted.

    Raises:
        InfluxDBClientError: If the bucket reset or the registration fails
    """
    await run_in_threadpool(store.recreate_bucket, store.config.processed_bucket)

    flux = zero_value_alert_flux(
        store.config.bucket,
        store.config.processed_bucket,
        user_id,
    )
    body = await run_in_threadpool(store.post_task, flux)
    logger.info(f"Registered task {alert_task_name(user_id)!r}: {body.get('id')}")
    return body


async def check_database_health(store: InfluxStore) -> bool:
    """
    Check if InfluxDB is reachable.

    Returns:
        True if database is healthy, False otherwise
    """
    return await run_in_threadpool(store.health_check)
