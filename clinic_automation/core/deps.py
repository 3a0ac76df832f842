"""FastAPI dependencies for the admin surface."""

import hmac

from fastapi import Header, HTTPException, Request

from clinic_automation.runtime import Runtime

INTERNAL_SECRET_HEADER = "X-Internal-Secret"


def get_runtime(request: Request) -> Runtime:
    """The runtime built at startup (see `main.lifespan`)."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not initialized")
    return runtime


def verify_internal_secret(
    request: Request,
    x_internal_secret: str | None = Header(default=None),
) -> None:
    """Verify the internal secret header."""
    expected = get_runtime(request).config.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if not x_internal_secret or not hmac.compare_digest(x_internal_secret, expected):
        raise HTTPException(status_code=403, detail="Invalid internal secret")
