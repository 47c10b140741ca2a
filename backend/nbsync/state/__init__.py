from .store import DocumentStore, UpdateOptions
from .autosave import AutosaveReconciler, STILL_SYNCING_MESSAGE

__all__ = ["DocumentStore", "UpdateOptions", "AutosaveReconciler", "STILL_SYNCING_MESSAGE"]
