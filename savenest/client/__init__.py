from savenest.client.engine import MutationResult, ReconciliationEngine
from savenest.client.errors import RemoteStoreError, SaveNestError, ValidationError
from savenest.client.notifications import Notifier, Toast
from savenest.client.records import Bookmark, ChangeEvent, UserIdentity
from savenest.client.settings import ClientSettings
from savenest.client.store import RemoteStoreClient, Subscription
from savenest.client.views import ViewPreferences, derive_view

__all__ = [
    "Bookmark",
    "ChangeEvent",
    "ClientSettings",
    "MutationResult",
    "Notifier",
    "ReconciliationEngine",
    "RemoteStoreClient",
    "RemoteStoreError",
    "SaveNestError",
    "Subscription",
    "Toast",
    "UserIdentity",
    "ValidationError",
    "ViewPreferences",
    "derive_view",
]
