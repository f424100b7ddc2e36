"""
InfluxDB Client — Write, Query and Task Interface

Thin adapter over influxdb-client. Each public method performs one
interaction with InfluxDB and converts library failures into a tagged
InfluxDBClientError (see errors.py).

Schema:
- Tags: user_id
- Fields: field1 (float)
- Timestamp: ingestion time (UTC)
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.domain.bucket import Bucket
from influxdb_client.domain.task import Task
from influxdb_client.domain.task_create_request import TaskCreateRequest

from .config import InfluxDBConfig, TASK_DESCRIPTION, USER_TAG, VALUE_FIELD, load_config
from .errors import ErrorKind, InfluxDBClientError, classify_error


logger = logging.getLogger(__name__)


def build_user_point(
    user_id: str,
    measurement: str,
    value: float,
    timestamp: Optional[datetime] = None,
) -> Point:
    """
    Build the point written for one ingest request.

    A point requires at a minimum a measurement, a field and a value. The
    user_id tag lets queries find the data of each separate user.
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    return (
        Point(measurement)
        .tag(USER_TAG, user_id)
        .field(VALUE_FIELD, float(value))
        .time(timestamp, WritePrecision.NS)
    )


class InfluxStore:
    """
    InfluxDB client wrapper for the starter service.

    Handles connection management, point writes, Flux queries, bucket
    reset and task registration.
    """

    def __init__(self, config: Optional[InfluxDBConfig] = None):
        """
        Initialize the store.

        Args:
            config: InfluxDB configuration. If None, loads from settings.
        """
        self.config = config or load_config()
        self._client: Optional[InfluxDBClient] = None

    def connect(self, verify: bool = False) -> None:
        """
        Create the underlying InfluxDBClient.

        Args:
            verify: Ping the server and fail if it does not answer

        Raises:
            InfluxDBClientError: If the client cannot be created or the ping fails
        """
        try:
            self._client = InfluxDBClient(
                url=self.config.url,
                token=self.config.token,
                org=self.config.org,
            )
        except Exception as e:
            raise InfluxDBClientError(f"Connection failed: {e}", ErrorKind.TRANSIENT) from e

        if verify and not self._client.ping():
            self.disconnect()
            raise InfluxDBClientError("Failed to ping InfluxDB", ErrorKind.TRANSIENT)

    def disconnect(self) -> None:
        """Close the connection."""
        if self._client:
            self._client.close()
            self._client = None

    @contextmanager
    def connection(self, verify: bool = False):
        """Context manager for connection handling."""
        try:
            self.connect(verify=verify)
            yield self
        finally:
            self.disconnect()

    def _ensure_connected(self) -> None:
        """Ensure client is connected."""
        if self._client is None:
            raise InfluxDBClientError("Not connected. Call connect() first.")

    def write_point(self, point: Point) -> None:
        """
        Write a single point to the configured bucket.

        The write API is opened for this one point and closed afterwards,
        so nothing is batched between requests.

        Raises:
            InfluxDBClientError: If write fails
        """
        self._ensure_connected()

        try:
            with self._client.write_api(write_options=SYNCHRONOUS) as write_api:
                write_api.write(bucket=self.config.bucket, org=self.config.org, record=point)
        except Exception as e:
            raise classify_error(e, "Write") from e

        logger.info("WRITE FINISHED")

    def query_rows(self, query: str) -> List[Dict[str, Any]]:
        """
        Execute a Flux query and return every row as a dictionary.

        Each row is also logged.

        Raises:
            InfluxDBClientError: If query fails
        """
        self._ensure_connected()

        try:
            tables = self._client.query_api().query(query, org=self.config.org)
        except Exception as e:
            raise classify_error(e, "Query") from e

        rows = []
        for table in tables:
            for record in table.records:
                row = dict(record.values)
                logger.info(f"Row: {row}")
                rows.append(row)

        logger.info(f"Query finished, {len(rows)} row(s)")
        return rows

    def create_task(self, flux: str, description: str = TASK_DESCRIPTION) -> Task:
        """
        Register a task through the client library's task API.

        The task name and period come from the `option task` header of
        the Flux script.

        Raises:
            InfluxDBClientError: If task creation fails
        """
        self._ensure_connected()

        request = TaskCreateRequest(
            org_id=self.config.org_id,
            flux=flux,
            status="active",
            description=description,
        )
        try:
            task = self._client.tasks_api().create_task(task_create_request=request)
        except Exception as e:
            raise classify_error(e, "Task creation") from e

        logger.info(f"Created task {task.name!r} identified by {task.id!r}")
        return task

    def recreate_bucket(self, name: str) -> Bucket:
        """
        Create a bucket, deleting any existing bucket of the same name first.

        Steps run in order: organization lookup, bucket lookup, delete if
        found, create.

        Raises:
            InfluxDBClientError: If the organization is missing or any step fails
        """
        self._ensure_connected()

        try:
            orgs = self._client.organizations_api().find_organizations(org=self.config.org)
        except Exception as e:
            raise classify_error(e, "Organization lookup") from e
        if not orgs:
            logger.error(f'No organization named "{self.config.org}" found!')
            raise InfluxDBClientError(
                f'No organization named "{self.config.org}" found',
                ErrorKind.NOT_FOUND,
            )
        org_id = orgs[0].id
        logger.info(f'Using organization "{self.config.org}" identified by "{org_id}"')

        buckets_api = self._client.buckets_api()

        logger.info("*** Get buckets by name ***")
        try:
            found = buckets_api.find_buckets(org_id=org_id, name=name)
            existing = found.buckets if found and found.buckets else []
        except Exception as e:
            error = classify_error(e, "Bucket lookup")
            if error.kind is not ErrorKind.NOT_FOUND:
                raise error from e
            existing = []

        if existing:
            bucket_id = existing[0].id
            logger.info(f'*** Delete Bucket "{name}" identified by "{bucket_id}" ***')
            try:
                buckets_api.delete_bucket(existing[0])
            except Exception as e:
                raise classify_error(e, "Bucket deletion") from e

        logger.info(f'*** Create Bucket "{name}" ***')
        try:
            bucket = buckets_api.create_bucket(bucket_name=name, org_id=org_id)
        except Exception as e:
            raise classify_error(e, "Bucket creation") from e

        logger.info(f'Created bucket "{bucket.name}" identified by "{bucket.id}"')
        return bucket

    def post_task(self, flux: str, description: str = TASK_DESCRIPTION) -> Dict[str, Any]:
        """
        Register a task with a direct POST to /api/v2/tasks.

        Bypasses the client library and authenticates with the configured
        token.

        Returns:
            Decoded JSON body of the created task

        Raises:
            InfluxDBClientError: On transport errors or a non-2xx response
        """
        url = f"{self.config.url}/api/v2/tasks"
        payload = {
            "flux": flux,
            "orgID": self.config.org_id,
            "status": "active",
            "description": description,
        }
        headers = {
            "Authorization": f"Token {self.config.token}",
            "Content-Type": "application/json",
        }
        logger.info(f"host: {url}")

        try:
            response = requests.post(
                url,
                json=payload,
                headers=headers,
                timeout=self.config.http_timeout,
            )
            response.raise_for_status()
            logger.info(f"Status: {response.status_code}")
            body = response.json() if response.content else {}
        except (requests.RequestException, ValueError) as e:
            # JSONDecodeError is a ValueError; the task may exist already
            raise classify_error(e, "Task registration") from e

        logger.debug(f"Task registration response: {body}")
        return body

    def health_check(self) -> bool:
        """
        Check if InfluxDB is healthy and accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            if self._client is None:
                self.connect()
            return bool(self._client.ping())
        except Exception:
            return False
