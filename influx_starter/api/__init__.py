"""
API Module — FastAPI Front-End

Public API:
- app: FastAPI application instance
- router: API routes
"""

from .main import app
from .routes import router
from .schemas import IngestRequest, IngestResponse, QueryResponse, TaskResponse, UserRequest

__all__ = [
    "app",
    "router",
    "IngestRequest",
    "IngestResponse",
    "QueryResponse",
    "TaskResponse",
    "UserRequest",
]
