"""HTTP service exposing the router.

Routes:
- POST /optimize: exact-input swap plan for one token pair (see endpoints)
- GET /health: liveness and package version

Server settings come from ROUTER_HOST, ROUTER_PORT and ROUTER_DEBUG. Indexer,
RPC and cache locations are read by the endpoints module when the first
request builds the router. Callers are not throttled here; an upstream rate
limit reaches them as a 429 with Retry-After when the delay is known.
"""

import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dexrouter import __version__
from dexrouter.api.endpoints import router

HOST = os.environ.get("ROUTER_HOST", "0.0.0.0")
PORT = int(os.environ.get("ROUTER_PORT", "8000"))
DEBUG = os.environ.get("ROUTER_DEBUG", "false").lower() in ("true", "1", "yes")

# An optimize request is a token pair, an amount and a few options
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="DEX Router",
    description="Splits exact-input swaps across concentrated and weighted/stable pools",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject bodies declared larger than MAX_REQUEST_SIZE, or with a bad length."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        if not content_length.isdigit():
            return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length"})
        if int(content_length) > MAX_REQUEST_SIZE:
            return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Liveness check; does not touch indexers or the chain."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Serve the API with uvicorn (reloading when ROUTER_DEBUG is set)."""
    uvicorn.run(
        "dexrouter.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
