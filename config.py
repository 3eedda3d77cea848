"""
Runtime configuration.

Values come from the process environment, optionally seeded from a ``.env``
file at the project root. Supabase credentials are read separately, and only
when the client is first needed (see ``repositories/client.py``).

Environment variables:
- STOCK_COMPENSATE_ON_FAILURE: undo a request's earlier stock movements when a
  later one fails (default: true)
- SALES_PAGE_LIMIT_MAX: upper bound for ``limit`` when listing sales (default: 200)
- LOG_LEVEL: root logging level for the API process (default: INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PATH = Path(__file__).parent / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid integer for {name}: {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Settings:
    compensate_on_failure: bool = True
    sales_page_limit_max: int = 200
    log_level: str = "INFO"


def load_settings() -> Settings:
    load_dotenv(dotenv_path=ENV_PATH)
    return Settings(
        compensate_on_failure=_env_bool("STOCK_COMPENSATE_ON_FAILURE", True),
        sales_page_limit_max=_env_int("SALES_PAGE_LIMIT_MAX", 200),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


__all__ = ["Settings", "load_settings", "ENV_PATH"]
