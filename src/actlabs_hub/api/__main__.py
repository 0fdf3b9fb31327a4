"""
actlabs_hub.api.__main__

`python -m actlabs_hub.api` (or the `actlabs-hub` script): serve the hub with uvicorn.
"""

from __future__ import annotations

import uvicorn

from actlabs_hub.api.app import create_app
from actlabs_hub.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        # structlog owns log formatting.
        log_config=None,
    )


if __name__ == "__main__":
    main()
