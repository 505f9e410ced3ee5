"""
Application errors for the fulfillment API.

Every error carries a stable code, an HTTP status and a details dict that
routes serialize with to_dict().
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Root of every error the API reports to clients.

    Attributes:
        code: Error code (e.g., "ORDER_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with current resource state (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class AuthenticationError(AppError):
    """Request has no identity (401)."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401
        )


class AuthorizationError(AppError):
    """Identity present but not allowed (403)."""

    def __init__(
        self,
        message: str,
        code: str = "FORBIDDEN",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=403,
            details=details
        )


class ExternalServiceError(AppError):
    """Upstream integration failure (502)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=502,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# ORDER ERRORS
# ===================

class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class InvalidStatusTransitionError(ValidationError):
    """Status change not allowed from the current state."""

    def __init__(self, current_status: str, new_status: str, entity: str = "Order"):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition {entity.lower()} from {current_status} to {new_status}",
            details={
                "entity": entity,
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class StatusConflictError(ConflictError):
    """Stored status no longer matches the expected one."""

    def __init__(self, order_id: str, expected_status: str, new_status: str):
        super().__init__(
            code="STATUS_CONFLICT",
            message=f"Order status changed before it could be set to {new_status}",
            details={
                "id": order_id,
                "expected_status": expected_status,
                "new_status": new_status,
            }
        )


class IssueNoteRequiredError(ValidationError):
    """Flagging a packing issue needs a note."""

    def __init__(self, order_id: str):
        super().__init__(
            code="ISSUE_NOTE_REQUIRED",
            message="An issue note is required to put the order on hold",
            details={"id": order_id}
        )


class InvalidDeletePasswordError(AuthorizationError):
    """Delete password missing or wrong."""

    def __init__(self, resource: str):
        super().__init__(
            code="INCORRECT_PASSWORD",
            message="Incorrect password",
            details={"resource": resource}
        )


class BulkStatusUpdateError(AppError):
    """A bulk status change stopped part way through."""

    def __init__(
        self,
        status: str,
        applied_ids: list[str],
        failed_id: str,
        skipped_ids: list[str],
        cause: Exception
    ):
        status_code = cause.status_code if isinstance(cause, AppError) else 500
        super().__init__(
            code="BULK_STATUS_UPDATE_FAILED",
            message=f"Bulk update to {status} failed on order {failed_id}",
            status_code=status_code,
            details={
                "status": status,
                "applied_ids": applied_ids,
                "failed_id": failed_id,
                "skipped_ids": skipped_ids,
                "error": str(cause),
            }
        )
        self.applied_ids = applied_ids
        self.failed_id = failed_id
        self.skipped_ids = skipped_ids


# ===================
# SHIPMENT ERRORS
# ===================

class ShipmentNotFoundError(NotFoundError):
    """Shipment not found."""

    def __init__(self, shipment_id: str):
        super().__init__(
            resource="Shipment",
            identifier=shipment_id,
            code="SHIPMENT_NOT_FOUND"
        )


# ===================
# PRODUCT ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


# ===================
# PRODUCTION ERRORS
# ===================

class ProductionTaskNotFoundError(NotFoundError):
    """Production task not found."""

    def __init__(self, task_id: str):
        super().__init__(
            resource="Production task",
            identifier=task_id,
            code="PRODUCTION_TASK_NOT_FOUND"
        )


class WorkStationNotFoundError(NotFoundError):
    """Workstation not found."""

    def __init__(self, station_id: str):
        super().__init__(
            resource="Workstation",
            identifier=station_id,
            code="WORKSTATION_NOT_FOUND"
        )


class BlockedReasonRequiredError(ValidationError):
    """Blocking a task needs a reason."""

    def __init__(self, task_id: str):
        super().__init__(
            code="BLOCKED_REASON_REQUIRED",
            message="A reason is required to block a task",
            details={"id": task_id}
        )


# ===================
# SETTINGS ERRORS
# ===================

class BoxPresetNotFoundError(NotFoundError):
    """Box preset not found."""

    def __init__(self, preset_id: str):
        super().__init__(
            resource="Box preset",
            identifier=preset_id,
            code="BOX_PRESET_NOT_FOUND"
        )


class PackingConfigNotFoundError(NotFoundError):
    """Packing config not found."""

    def __init__(self, config_id: str):
        super().__init__(
            resource="Packing config",
            identifier=config_id,
            code="PACKING_CONFIG_NOT_FOUND"
        )


class ShorthandNotFoundError(NotFoundError):
    """Product shorthand not found."""

    def __init__(self, shorthand_id: str):
        super().__init__(
            resource="Product shorthand",
            identifier=shorthand_id,
            code="SHORTHAND_NOT_FOUND"
        )


# ===================
# INTEGRATION ERRORS
# ===================

class IntegrationNotConfiguredError(ValidationError):
    """Credentials for an integration are missing."""

    def __init__(self, service: str, missing: list[str]):
        super().__init__(
            code=f"{service.upper()}_NOT_CONFIGURED",
            message=f"{service} credentials not configured",
            details={"service": service, "missing": missing}
        )


class FedExError(ExternalServiceError):
    """FedEx API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="fedex", message=message, details=details)


class MagentoError(ExternalServiceError):
    """Magento API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="magento", message=message, details=details)


class LLMError(ExternalServiceError):
    """LLM call failed or returned unusable output."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="llm", message=message, details=details)


class EmailError(ExternalServiceError):
    """Email dispatch failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(service="email", message=message, details=details)
