"""
Scorecast API entrypoint (console script: scorecast-api).

Each uvicorn worker runs its own lifespan, so SC_POLL_TRIGGER_ENABLED starts
one poll trigger per worker; overlapping cycles are safe because every
notification is claimed by compare-and-set first.
"""
from __future__ import annotations

import os
from typing import Any

import uvicorn

from shared.config import Settings, get_settings


def server_options(settings: Settings) -> dict[str, Any]:
    """uvicorn.run keyword arguments; PORT overrides SC_API_PORT when set."""
    return {
        "host": settings.api_host,
        "port": int(os.environ.get("PORT", settings.api_port)),
        "workers": settings.api_workers,
        "log_level": settings.log_level.lower(),
        # request lines come from RequestLoggingMiddleware
        "access_log": False,
    }


def main() -> None:
    uvicorn.run("api.app:app", **server_options(get_settings()))


if __name__ == "__main__":
    main()
