"""
civicpulse API package initialization.

This package contains the FastAPI router for the query pipeline:
- query: POST /query and the record-cache invalidation endpoint
"""

from fastapi import APIRouter

from civicpulse.api.query import router as query_router

api_router = APIRouter()
api_router.include_router(query_router, tags=["query"])

__all__ = [
    "api_router",
    "query_router",
]
