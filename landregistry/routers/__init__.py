"""
Land Registry API - Routers
"""

from landregistry.routers.auth import router as auth_router
from landregistry.routers.parcels import router as parcels_router

__all__ = ["auth_router", "parcels_router"]
