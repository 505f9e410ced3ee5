"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    DatabaseError,

    # Orders
    OrderNotFoundError,
    InvalidStatusTransitionError,
    StatusConflictError,
    IssueNoteRequiredError,
    InvalidDeletePasswordError,
    BulkStatusUpdateError,

    # Shipments
    ShipmentNotFoundError,

    # Products
    ProductNotFoundError,

    # Production
    ProductionTaskNotFoundError,
    WorkStationNotFoundError,
    BlockedReasonRequiredError,

    # Settings
    BoxPresetNotFoundError,
    PackingConfigNotFoundError,
    ShorthandNotFoundError,

    # Integrations
    IntegrationNotConfiguredError,
    FedExError,
    MagentoError,
    LLMError,
    EmailError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "AuthenticationError",
    "AuthorizationError",
    "ExternalServiceError",
    "DatabaseError",

    # Orders
    "OrderNotFoundError",
    "InvalidStatusTransitionError",
    "StatusConflictError",
    "IssueNoteRequiredError",
    "InvalidDeletePasswordError",
    "BulkStatusUpdateError",

    # Shipments
    "ShipmentNotFoundError",

    # Products
    "ProductNotFoundError",

    # Production
    "ProductionTaskNotFoundError",
    "WorkStationNotFoundError",
    "BlockedReasonRequiredError",

    # Settings
    "BoxPresetNotFoundError",
    "PackingConfigNotFoundError",
    "ShorthandNotFoundError",

    # Integrations
    "IntegrationNotConfiguredError",
    "FedExError",
    "MagentoError",
    "LLMError",
    "EmailError",
]
