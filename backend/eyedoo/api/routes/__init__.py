from fastapi import APIRouter

from eyedoo.api.routes import health, timelines

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(timelines.router, prefix="/timelines", tags=["timelines"])
