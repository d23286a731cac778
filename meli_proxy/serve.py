"""Process entrypoint: ``meli-proxy`` console script or ``uvicorn meli_proxy.serve:app``."""

from __future__ import annotations

import os

from dotenv import load_dotenv

if os.environ.get("ENV", "development") != "production":
    load_dotenv()

from meli_proxy.app import create_app  # noqa: E402
from meli_proxy.config import settings  # noqa: E402
from meli_proxy.logging_setup import configure_logging  # noqa: E402

configure_logging(settings.log_level)

app = create_app(settings)


def main() -> None:
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=True,
        forwarded_allow_ips="*",
        # keep-alive above common load balancer idle timeouts (60s)
        timeout_keep_alive=61,
        timeout_graceful_shutdown=10,
        log_config=None,
    )


if __name__ == "__main__":
    main()
