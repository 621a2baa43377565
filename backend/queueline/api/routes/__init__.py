"""API routes."""

from fastapi import APIRouter

from queueline.api.routes import auth, queue, saved, stats

api_router = APIRouter()

api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
api_router.include_router(stats.router, prefix="/stats", tags=["stats"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(saved.router, prefix="/saved", tags=["saved"])
