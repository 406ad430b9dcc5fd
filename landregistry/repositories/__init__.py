"""
Land Registry API - Repositories
"""

from landregistry.repositories.parcels import ParcelRepository

__all__ = ["ParcelRepository"]
