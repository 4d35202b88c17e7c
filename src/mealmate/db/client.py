"""
MealMate - Supabase Client.

Low-level connection to the document store. Query logic lives in
mealmate.db.meals.
"""

from supabase import Client, create_client

from mealmate.config import settings

# Singleton client instance
_client: Client | None = None


def get_client() -> Client:
    """
    Get the Supabase client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        _client = create_client(
            settings.supabase_url,
            settings.supabase_anon_key,
        )

    return _client
