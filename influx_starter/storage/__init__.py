"""
Storage Module — InfluxDB Adapter

Public API:
- InfluxStore: Client class for write, query, bucket and task operations
- InfluxDBClientError / ErrorKind: Tagged storage failures
- InfluxDBConfig / load_config: Connection configuration
- build_user_point: Point construction for ingested values
"""

from .client import InfluxStore, build_user_point
from .config import InfluxDBConfig, load_config
from .errors import ErrorKind, InfluxDBClientError, classify_error

__all__ = [
    "InfluxStore",
    "build_user_point",
    "InfluxDBConfig",
    "load_config",
    "ErrorKind",
    "InfluxDBClientError",
    "classify_error",
]
