"""
Settings API routes.

Shipping settings are a single record created on first save. Box presets,
packing configs and product shorthands are reference data.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.settings import (
    ShippingSettingsUpdate,
    ShippingSettingsResponse,
    BoxPresetCreate,
    BoxPresetResponse,
    PackingConfigCreate,
    PackingConfigResponse,
    ProductShorthandCreate,
    ProductShorthandUpdate,
    ProductShorthandResponse,
    ReferenceDeleted,
)
from services.settings_service import get_settings_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/settings", tags=["Settings"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# SHIPPING SETTINGS
# ===================

@router.get("/shipping", response_model=ShippingSettingsResponse)
async def get_shipping_settings():
    """Saved shipping settings, or defaults when none are saved."""
    try:
        service = get_settings_service()
        return service.get_shipping_settings()

    except Exception as e:
        return handle_error(e)


@router.put("/shipping", response_model=ShippingSettingsResponse)
async def save_shipping_settings(data: ShippingSettingsUpdate):
    """Create or update the shipping settings. Only provided fields change."""
    try:
        service = get_settings_service()
        return service.save_shipping_settings(data)

    except Exception as e:
        return handle_error(e)


# ===================
# BOX PRESETS
# ===================

@router.get("/boxes", response_model=list[BoxPresetResponse])
async def list_box_presets(
    include_inactive: bool = Query(False, description="Include inactive presets")
):
    try:
        service = get_settings_service()
        return service.list_box_presets(active_only=not include_inactive)

    except Exception as e:
        return handle_error(e)


@router.post("/boxes", response_model=BoxPresetResponse, status_code=201)
async def create_box_preset(data: BoxPresetCreate):
    try:
        service = get_settings_service()
        return service.create_box_preset(data)

    except Exception as e:
        return handle_error(e)


@router.delete("/boxes/{preset_id}", response_model=ReferenceDeleted)
async def delete_box_preset(preset_id: str):
    try:
        service = get_settings_service()
        service.delete_box_preset(preset_id)
        return ReferenceDeleted(id=preset_id)

    except Exception as e:
        return handle_error(e)


# ===================
# PACKING CONFIGS
# ===================

@router.get("/packing", response_model=list[PackingConfigResponse])
async def list_packing_configs():
    try:
        service = get_settings_service()
        return service.list_packing_configs()

    except Exception as e:
        return handle_error(e)


@router.post("/packing", response_model=PackingConfigResponse, status_code=201)
async def create_packing_config(data: PackingConfigCreate):
    try:
        service = get_settings_service()
        return service.create_packing_config(data)

    except Exception as e:
        return handle_error(e)


@router.delete("/packing/{config_id}", response_model=ReferenceDeleted)
async def delete_packing_config(config_id: str):
    try:
        service = get_settings_service()
        service.delete_packing_config(config_id)
        return ReferenceDeleted(id=config_id)

    except Exception as e:
        return handle_error(e)


# ===================
# PRODUCT SHORTHANDS
# ===================

@router.get("/shorthands", response_model=list[ProductShorthandResponse])
async def list_shorthands():
    try:
        service = get_settings_service()
        return service.list_shorthands()

    except Exception as e:
        return handle_error(e)


@router.post("/shorthands", response_model=ProductShorthandResponse, status_code=201)
async def create_shorthand(data: ProductShorthandCreate):
    try:
        service = get_settings_service()
        return service.create_shorthand(data)

    except Exception as e:
        return handle_error(e)


@router.patch("/shorthands/{shorthand_id}", response_model=ProductShorthandResponse)
async def update_shorthand(shorthand_id: str, data: ProductShorthandUpdate):
    try:
        service = get_settings_service()
        return service.update_shorthand(shorthand_id, data)

    except Exception as e:
        return handle_error(e)


@router.delete("/shorthands/{shorthand_id}", response_model=ReferenceDeleted)
async def delete_shorthand(shorthand_id: str):
    try:
        service = get_settings_service()
        service.delete_shorthand(shorthand_id)
        return ReferenceDeleted(id=shorthand_id)

    except Exception as e:
        return handle_error(e)
