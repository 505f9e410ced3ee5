"""
Business logic services.

Each service handles one domain area.
"""

from services.entity_store import EntityStore
from services.order_service import OrderService, get_order_service
from services.queue_service import QUEUES, QueueFilters, QueueSort
from services.shipment_service import ShipmentService, get_shipment_service
from services.product_service import ProductService, get_product_service
from services.production_service import ProductionService, get_production_service
from services.forecast_service import ForecastService, get_forecast_service
from services.settings_service import SettingsService, get_settings_service
from services.magento_service import MagentoService, get_magento_service
from services.insight_service import InsightService, get_insight_service
from services.report_service import ReportService, get_report_service
from services.export_service import ExportService, get_export_service

__all__ = [
    "EntityStore",
    "OrderService",
    "get_order_service",
    "QUEUES",
    "QueueFilters",
    "QueueSort",
    "ShipmentService",
    "get_shipment_service",
    "ProductService",
    "get_product_service",
    "ProductionService",
    "get_production_service",
    "ForecastService",
    "get_forecast_service",
    "SettingsService",
    "get_settings_service",
    "MagentoService",
    "get_magento_service",
    "InsightService",
    "get_insight_service",
    "ReportService",
    "get_report_service",
    "ExportService",
    "get_export_service",
]
