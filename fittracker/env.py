from __future__ import annotations

import os

PRIMARY_PREFIX = "FITTRACKER_"
LEGACY_PREFIX = "FITTRACKER_PRO_"


def get_env(name: str, default: str | None = None) -> str | None:
    """
    Resolve configuration environment variables.

    Prefers the short prefix while still honouring the ``FITTRACKER_PRO_`` names
    used by the first deployments.
    """
    for prefix in (PRIMARY_PREFIX, LEGACY_PREFIX):
        value = os.getenv(f"{prefix}{name}")
        if value is not None:
            return value
    return default
