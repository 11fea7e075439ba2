"""Viewer-side display reconciliation and service client."""

from .client import ServiceClient, ServiceUnreachableError
from .reconciler import DisplayReconciler, DisplayState, ViewerInitializationError
from .refresh import RefreshLoop

__all__ = [
    "DisplayReconciler",
    "DisplayState",
    "RefreshLoop",
    "ServiceClient",
    "ServiceUnreachableError",
    "ViewerInitializationError",
]
