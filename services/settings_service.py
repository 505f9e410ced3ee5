"""
Settings service: shipping settings and reference data.

Shipping settings live in a single record keyed "main". Box presets,
packing configs and product shorthands are plain CRUD record sets.
"""

from typing import Optional
from datetime import datetime
import structlog

from models.settings import (
    SETTINGS_KEY,
    ShippingSettingsUpdate,
    ShippingSettingsResponse,
    BoxPresetCreate,
    BoxPresetResponse,
    PackingConfigCreate,
    PackingConfigResponse,
    ProductShorthandCreate,
    ProductShorthandUpdate,
    ProductShorthandResponse,
)
from services.entity_store import EntityStore
from exceptions import (
    BoxPresetNotFoundError,
    PackingConfigNotFoundError,
    ShorthandNotFoundError,
)
from utils.time_utils import utcnow

logger = structlog.get_logger(__name__)


class SettingsService:
    """
    Settings business logic.

    The shipping settings record is created on first save.
    """

    def __init__(self):
        self.settings = EntityStore("shipping_settings")
        self.boxes = EntityStore("box_presets")
        self.packing_configs = EntityStore("packing_configs")
        self.shorthands = EntityStore("product_shorthands")

    # ===================
    # SHIPPING SETTINGS
    # ===================

    def _get_settings_row(self) -> Optional[dict]:
        rows = self.settings.filter({"setting_key": SETTINGS_KEY}, limit=1)
        return rows[0] if rows else None

    def get_shipping_settings(self) -> ShippingSettingsResponse:
        """Saved settings, or defaults when nothing has been saved."""
        row = self._get_settings_row()
        if not row:
            logger.debug("shipping_settings_defaulted")
            return ShippingSettingsResponse()
        return ShippingSettingsResponse.model_validate(row)

    def save_shipping_settings(self, data: ShippingSettingsUpdate) -> ShippingSettingsResponse:
        """Create the settings record or merge into it."""
        update_data = data.model_dump(mode="json", exclude_unset=True)
        row = self._get_settings_row()

        if row:
            saved = self.settings.update(row["id"], update_data) or {**row, **update_data}
        else:
            saved = self.settings.create({"setting_key": SETTINGS_KEY, **update_data})

        logger.info("shipping_settings_saved", fields=list(update_data.keys()))

        return ShippingSettingsResponse.model_validate(saved)

    def stamp_sync(self, field: str, when: Optional[datetime] = None) -> None:
        """
        Record a sync time (last_order_sync / last_product_sync).

        Does nothing if no settings record exists yet.
        """
        row = self._get_settings_row()
        if not row:
            logger.debug("sync_stamp_skipped_no_settings", field=field)
            return
        self.settings.update(row["id"], {field: (when or utcnow()).isoformat()})
        logger.info("sync_time_stamped", field=field)

    # ===================
    # BOX PRESETS
    # ===================

    def list_box_presets(self, active_only: bool = True) -> list[BoxPresetResponse]:
        """Box presets by name."""
        if active_only:
            rows = self.boxes.filter({"is_active": True}, sort="name")
        else:
            rows = self.boxes.list(sort="name")
        return [BoxPresetResponse.model_validate(row) for row in rows]

    def create_box_preset(self, data: BoxPresetCreate) -> BoxPresetResponse:
        row = self.boxes.create(data.model_dump(mode="json"))
        logger.info("box_preset_created", name=data.name)
        return BoxPresetResponse.model_validate(row)

    def delete_box_preset(self, preset_id: str) -> bool:
        if not self.boxes.get(preset_id):
            raise BoxPresetNotFoundError(preset_id)
        self.boxes.delete(preset_id)
        logger.info("box_preset_deleted", preset_id=preset_id)
        return True

    # ===================
    # PACKING CONFIGS
    # ===================

    def list_packing_configs(self) -> list[PackingConfigResponse]:
        rows = self.packing_configs.list(sort="sku")
        return [PackingConfigResponse.model_validate(row) for row in rows]

    def create_packing_config(self, data: PackingConfigCreate) -> PackingConfigResponse:
        row = self.packing_configs.create(data.model_dump(mode="json"))
        logger.info("packing_config_created", sku=data.sku)
        return PackingConfigResponse.model_validate(row)

    def delete_packing_config(self, config_id: str) -> bool:
        if not self.packing_configs.get(config_id):
            raise PackingConfigNotFoundError(config_id)
        self.packing_configs.delete(config_id)
        logger.info("packing_config_deleted", config_id=config_id)
        return True

    # ===================
    # PRODUCT SHORTHANDS
    # ===================

    def list_shorthands(self) -> list[ProductShorthandResponse]:
        rows = self.shorthands.list(sort="sku")
        return [ProductShorthandResponse.model_validate(row) for row in rows]

    def get_shorthand_map(self) -> dict[str, dict]:
        """Shorthand records keyed by SKU."""
        return {row["sku"]: row for row in self.shorthands.list()}

    def create_shorthand(self, data: ProductShorthandCreate) -> ProductShorthandResponse:
        row = self.shorthands.create(data.model_dump(mode="json"))
        logger.info("shorthand_created", sku=data.sku)
        return ProductShorthandResponse.model_validate(row)

    def update_shorthand(self, shorthand_id: str, data: ProductShorthandUpdate) -> ProductShorthandResponse:
        if not self.shorthands.get(shorthand_id):
            raise ShorthandNotFoundError(shorthand_id)
        row = self.shorthands.update(shorthand_id, data.model_dump(mode="json", exclude_unset=True))
        if row is None:
            raise ShorthandNotFoundError(shorthand_id)
        return ProductShorthandResponse.model_validate(row)

    def delete_shorthand(self, shorthand_id: str) -> bool:
        if not self.shorthands.get(shorthand_id):
            raise ShorthandNotFoundError(shorthand_id)
        self.shorthands.delete(shorthand_id)
        logger.info("shorthand_deleted", shorthand_id=shorthand_id)
        return True


# Singleton instance
_settings_service: Optional[SettingsService] = None


def get_settings_service() -> SettingsService:
    """Get or create SettingsService instance."""
    global _settings_service
    if _settings_service is None:
        _settings_service = SettingsService()
    return _settings_service
