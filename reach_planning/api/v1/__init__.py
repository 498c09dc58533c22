"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import sessions, validation, imports, master_data

api_router = APIRouter()

api_router.include_router(
    sessions.router,
    prefix="/sessions",
    tags=["sessions"]
)

api_router.include_router(
    validation.router,
    prefix="/validate",
    tags=["validation"]
)

api_router.include_router(
    imports.router,
    prefix="/import",
    tags=["import"]
)

api_router.include_router(
    master_data.router,
    prefix="/master-data",
    tags=["master-data"]
)
