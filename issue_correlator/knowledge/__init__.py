"""Knowledge base (Stack Exchange) client package."""

from .client import StackExchangeClient
from .models import CommunityResponse, SearchCandidate, SearchStrategy

__all__ = [
    "StackExchangeClient",
    "CommunityResponse",
    "SearchCandidate",
    "SearchStrategy",
]
