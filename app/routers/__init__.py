"""
API routers package
"""

from app.routers.matches import router as matches_router
from app.routers.quotes import router as quotes_router
from app.routers.configuration import router as configuration_router
