from fastapi import APIRouter

from ecu_console.api.health import router as health_router
from ecu_console.api.modules import router as modules_router
from ecu_console.api.sessions import router as sessions_router
from ecu_console.api.navigation import router as navigation_router
from ecu_console.api.vehicles import router as vehicles_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(modules_router, tags=["modules"])
api_router.include_router(sessions_router, tags=["sessions"])
api_router.include_router(navigation_router, tags=["navigation"])
api_router.include_router(vehicles_router, tags=["vehicles"])
