"""
Mock service implementations for tests.
"""

from .mock_document_store import MockDocumentStore
from .mock_shopify import FakeBillingClient, FakeClock

__all__ = [
    "MockDocumentStore",
    "FakeBillingClient",
    "FakeClock",
]
