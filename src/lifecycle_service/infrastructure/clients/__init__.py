"""Clients for remote services."""

from lifecycle_service.infrastructure.clients.base import BaseServiceClient
from lifecycle_service.infrastructure.clients.practice_api_client import HttpPracticeStore

__all__ = [
    "BaseServiceClient",
    "HttpPracticeStore",
]
