"""Service layer: account lifecycle, outbound email, catalog credentials."""

from storytime.services.account_service import AccountService, VerificationOutcome
from storytime.services.catalog_client import CatalogCredentialClient
from storytime.services.notifier import (
    DeliveryError,
    NotificationKind,
    Notifier,
    ResendNotifier,
)

__all__ = [
    "AccountService",
    "CatalogCredentialClient",
    "DeliveryError",
    "NotificationKind",
    "Notifier",
    "ResendNotifier",
    "VerificationOutcome",
]
