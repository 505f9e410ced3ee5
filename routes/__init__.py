"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.orders import router as orders_router
from routes.shipments import router as shipments_router
from routes.products import router as products_router
from routes.production import router as production_router
from routes.settings import router as settings_router
from routes.reports import router as reports_router
from routes.integrations import router as integrations_router

__all__ = [
    "orders_router",
    "shipments_router",
    "products_router",
    "production_router",
    "settings_router",
    "reports_router",
    "integrations_router",
]
