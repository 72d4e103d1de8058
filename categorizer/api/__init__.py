"""
API router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import jobs, webhook

api_router = APIRouter()

api_router.include_router(
    webhook.router,
    tags=["webhook"]
)

api_router.include_router(
    jobs.router,
    tags=["jobs"]
)
