"""
InfluxDB Configuration — Connection Parameters

Frozen snapshot of the connection settings handed to the storage adapter.
Handlers never read the environment themselves; they receive an
InfluxDBConfig built once from the application settings.
"""

from dataclasses import dataclass
from typing import Optional

from influx_starter.config import Settings, get_settings


@dataclass(frozen=True)
class InfluxDBConfig:
    """
    InfluxDB connection configuration.

    `org` is the organization name used by the write/query/bucket APIs,
    `org_id` the organization id required by the task API.
    """
    url: str
    token: str
    org: str
    org_id: str
    bucket: str
    processed_bucket: str = "processed_data_bucket"
    http_timeout: float = 10.0


def load_config(settings: Optional[Settings] = None) -> InfluxDBConfig:
    """
    Build an InfluxDBConfig from application settings.

    Args:
        settings: Settings instance. If None, the cached settings are used.

    Returns:
        InfluxDBConfig instance with loaded values
    """
    settings = settings or get_settings()
    return InfluxDBConfig(
        url=settings.INFLUXDB_HOST.rstrip("/"),
        token=settings.INFLUXDB_TOKEN,
        org=settings.INFLUXDB_ORGANIZATION,
        org_id=settings.ORGANIZATION_ID,
        bucket=settings.INFLUXDB_BUCKET,
        processed_bucket=settings.PROCESSED_BUCKET,
        http_timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


# Schema constants
# These define HOW data maps to InfluxDB, not WHAT it means

# Tag attached to every ingested point so queries can find a user's data
USER_TAG = "user_id"

# The single float field carried by an ingested point
VALUE_FIELD = "field1"

# Measurement the downsampling task writes its aggregates into
DOWNSAMPLED_MEASUREMENT = "downsampled"

# Task periods
DOWNSAMPLE_EVERY = "5m"
ALERT_EVERY = "1m"

# How far back the query endpoint looks for downsampled values
QUERY_WINDOW = "-24h"

TASK_DESCRIPTION = "This task downsamples"
