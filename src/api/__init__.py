"""
API module for FastAPI routes.

This module organizes all API endpoints by domain/feature.
Each route module defines a FastAPI APIRouter that can be
mounted on the main application.
"""

from api.routes import catalog, events, health, recommend

__all__ = ["catalog", "events", "health", "recommend"]
