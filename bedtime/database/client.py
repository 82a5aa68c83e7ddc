"""
Supabase Client Configuration

The worker only needs the service-role client: it writes story state and
credit refunds on behalf of users, outside of any user session.
"""

from functools import lru_cache

from supabase import create_client, Client

from bedtime.config import config


class SupabaseClientError(Exception):
    """Raised when Supabase client cannot be initialized."""
    pass


@lru_cache(maxsize=1)
def get_supabase_admin_client() -> Client:
    """
    Get Supabase client with service role key (admin access).

    WARNING: This client bypasses Row Level Security!
    Only use for server-side operations where the user context is not available.
    """
    if not config.supabase_configured:
        raise SupabaseClientError(
            "SUPABASE_URL and SUPABASE_SERVICE_KEY must be configured. "
            "Set them in your .env file or environment variables."
        )

    return create_client(
        config.SUPABASE_URL,
        config.SUPABASE_SERVICE_KEY
    )
