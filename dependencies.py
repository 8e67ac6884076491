"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Services are built once in the app lifespan
and stored on app.state; tests swap them by populating app.state directly.
"""

from __future__ import annotations

from fastapi import Request

from services.analytics import AnalyticsService
from services.click_tracker import ClickTracker
from services.maintenance import MaintenanceService


def get_click_tracker(request: Request) -> ClickTracker:
    return request.app.state.click_tracker


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics_service


def get_maintenance_service(request: Request) -> MaintenanceService:
    return request.app.state.maintenance_service
