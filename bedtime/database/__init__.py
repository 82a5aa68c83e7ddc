"""
Database Layer

Supabase client and the services the story worker persists through.
"""

from .client import get_supabase_admin_client, SupabaseClientError
from .credits import CreditService, PricingCache
from .stories import StoryRepository

__all__ = [
    "get_supabase_admin_client",
    "SupabaseClientError",
    "CreditService",
    "PricingCache",
    "StoryRepository",
]
