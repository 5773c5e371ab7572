"""Main API router — combines all endpoint routers."""

from fastapi import APIRouter

from readycheck.api.health import router as health_router
from readycheck.api.phases import router as phases_router
from readycheck.api.runs import router as runs_router
from readycheck.api.websocket import router as websocket_router

api_router = APIRouter()

# Health check
api_router.include_router(health_router, tags=["Health"])

# Phase catalog
api_router.include_router(phases_router, tags=["Phases"])

# Runs
api_router.include_router(runs_router, tags=["Runs"])

# WebSocket routes mount at the app root, outside /api/v1
ws_router = websocket_router
