"""
Supabase client initialization for the storage mirror.
"""

import logging
import os
from typing import Optional

from supabase import create_client, Client
from yarl import URL

logger = logging.getLogger(__name__)


def normalize_supabase_url(url: Optional[str]) -> Optional[str]:
    """Ensure Supabase URL ends with a trailing slash to satisfy storage client."""
    if not url:
        return None
    return url if url.endswith("/") else f"{url}/"


def get_supabase_client() -> Optional[Client]:
    """
    Initialize and return a Supabase client from environment variables.

    Requires:
        - SUPABASE_URL: Your Supabase project URL
        - SUPABASE_SERVICE_ROLE_KEY or SUPABASE_ANON_KEY: service role key is
          preferred so uploads are not subject to storage RLS

    Returns:
        Supabase client instance, or None if credentials are missing
    """
    supabase_url = normalize_supabase_url(os.environ.get("SUPABASE_URL"))
    supabase_key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY") or os.environ.get("SUPABASE_ANON_KEY")
    if not supabase_url or not supabase_key:
        return None

    try:
        supabase: Client = create_client(supabase_url, supabase_key)
    except Exception as e:
        logger.error(f"Error initializing Supabase client: {e}")
        return None

    # Ensure storage_url ends with a slash to avoid storage3 warnings.
    try:
        storage_url = str(supabase.storage_url)
        if not storage_url.endswith("/"):
            supabase.storage_url = URL(f"{storage_url}/")
    except AttributeError:
        pass

    return supabase
