"""HTTP service entrypoint for the scheduler worker (health plus admin routes)."""

from __future__ import annotations

import os

from clinic_automation.main import app

__all__ = ["app", "main"]


def main() -> None:
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    host = os.getenv("HOST", "0.0.0.0")
    # nosec B104 - container platforms require binding to all interfaces.
    uvicorn.run("clinic_automation.worker_service:app", host=host, port=port)


if __name__ == "__main__":
    main()
