"""FastAPI application and routes."""

from workflow_runner.api.app import create_app
from workflow_runner.api.routes import router

__all__ = ["create_app", "router"]
