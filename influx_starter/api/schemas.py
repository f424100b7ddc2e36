"""
Pydantic Schemas — API Request/Response Models

Each endpoint gets an explicit body model, so a missing or mistyped
field becomes a 422 instead of an empty value inside a Flux query.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Request Models
# ============================================================================

class IngestRequest(BaseModel):
    """
    Ingestion request for a single value.

    Example:
        {"user_id": "user1", "measurement": "measurement1", "field1": 1.0}

    "user" is a user of this application, not an InfluxDB user.
    """
    user_id: str = Field(..., description="Application user the point belongs to (tag)")
    measurement: str = Field(..., min_length=1, description="Measurement name")
    field1: float = Field(..., description="Value stored in the field1 field")


class UserRequest(BaseModel):
    """Body of the query and task endpoints: {"user_id": "user1"}."""
    user_id: str = Field(..., description="Application user")


# ============================================================================
# Response Models
# ============================================================================

class IngestResponse(BaseModel):
    """Successful ingestion response."""
    status: str = "accepted"
    user_id: str
    measurement: str
    field1: float
    timestamp: datetime
    message: str = "Point written successfully"


class QueryResponse(BaseModel):
    """
    Query result.

    Returned with 200 whatever the query produced; `error` carries the
    failure kind when the query itself failed.
    """
    status: str
    user_id: str
    count: int
    rows: list[dict[str, Any]]
    error: Optional[str] = None


class TaskResponse(BaseModel):
    """Task registration result."""
    status: str = "created"
    task_id: Optional[str] = None
    name: str
    every: str
    influx_status: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    message: str
