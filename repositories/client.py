"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is
created lazily on first use so that importing repository modules (for example
from tests running against in-memory repositories) does not require
credentials.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, List

from dotenv import load_dotenv
from postgrest.exceptions import APIError

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config import ENV_PATH
from domain.errors import StorageError


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """Return the process-wide Supabase client, creating it on first call."""

    load_dotenv(dotenv_path=ENV_PATH)

    # Read credentials from the environment to avoid hard-coding secrets in code.
    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")

    if not supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(supabase_url, supabase_key)


def run(query: Any, *, action: str) -> Any:
    """
    Execute a PostgREST query/RPC builder and return the raw response.

    supabase-py raises APIError for failed requests while older builders set
    ``response.error``; both are surfaced as StorageError so callers handle
    a single exception type.
    """

    try:
        response = query.execute()
    except APIError as e:
        raise StorageError(f"Failed to {action}: {e.message or e}") from e

    error = getattr(response, "error", None)
    if error:
        raise StorageError(f"Failed to {action}: {error}")

    return response


def execute(query: Any, *, action: str) -> List[Any]:
    """Execute a query and return its data as a list of rows (possibly empty)."""

    data = getattr(run(query, action=action), "data", None)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


__all__ = ["get_supabase", "run", "execute"]
