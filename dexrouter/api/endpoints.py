"""API endpoints for the DEX router."""

import os
from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dexrouter.errors import (
    IndexerUnavailable,
    InvalidConfig,
    NoLiquidity,
    RateLimited,
    RouterError,
)
from dexrouter.models.api import ErrorResponse, ExecutionPlanResponse, OptimizeRequest
from dexrouter.routing.router import DexRouter, build_router

logger = structlog.get_logger()

router = APIRouter()

# HTTP status per terminal router error
ERROR_STATUS: dict[type[RouterError], int] = {
    InvalidConfig: 400,
    NoLiquidity: 404,
    RateLimited: 429,
    IndexerUnavailable: 503,
}


@lru_cache(maxsize=1)
def get_default_router() -> DexRouter:
    """Build the process-wide router from environment variables.

    - ROUTER_INDEXER_U_URL: GraphQL endpoint for venue U pools
    - ROUTER_INDEXER_B_URL: GraphQL endpoint for venue B pools
    - ROUTER_RPC_URL: JSON-RPC endpoint for probes and prices
    - ROUTER_CACHE_PATH: Pool cache file (default: pool_cache.json)
    """
    return build_router(
        indexer_u_url=os.environ.get("ROUTER_INDEXER_U_URL"),
        indexer_b_url=os.environ.get("ROUTER_INDEXER_B_URL"),
        rpc_url=os.environ.get("ROUTER_RPC_URL"),
        cache_path=os.environ.get("ROUTER_CACHE_PATH", "pool_cache.json"),
    )


def get_router() -> DexRouter:
    """Dependency provider for the router instance.

    Override this in tests to inject a router over static adapters:
        app.dependency_overrides[get_router] = lambda: test_router

    Returns:
        The router to use for optimize requests.
    """
    return get_default_router()


def error_response(error: RouterError) -> JSONResponse:
    """Map a terminal router error to its HTTP response."""
    status = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(error, kind)),
        500,
    )
    body = ErrorResponse(
        error=type(error).__name__,
        detail=str(error),
        retry_after=error.retry_after if isinstance(error, RateLimited) else None,
    )
    headers = {}
    if isinstance(error, RateLimited) and error.retry_after is not None:
        headers["Retry-After"] = str(int(error.retry_after))
    return JSONResponse(
        status_code=status,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )


@router.post(
    "/optimize",
    response_model=ExecutionPlanResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def optimize(
    request: OptimizeRequest,
    router_instance: DexRouter = Depends(get_router),
) -> ExecutionPlanResponse | JSONResponse:
    """Compute an execution plan for an exact-input swap.

    Args:
        request: Tokens, raw input amount and routing options
        router_instance: Injected router (via FastAPI Depends)

    Returns:
        The execution plan in camelCase JSON.

    Error Handling:
        - Invalid request schema: 422 (Pydantic)
        - InvalidConfig: 400
        - NoLiquidity: 404
        - RateLimited: 429, with Retry-After when known
        - IndexerUnavailable: 503
        - Any other exception: logged, 500
    """
    logger.info(
        "received_optimize_request",
        token_in=request.token_in,
        token_out=request.token_out,
        amount_in=request.amount_in,
    )
    options = request.options.to_options() if request.options is not None else None
    try:
        plan = await router_instance.optimize(
            request.token_in,
            request.token_out,
            int(request.amount_in),
            options,
            decimals=request.decimals,
        )
    except RouterError as e:
        status = error_response(e)
        logger.warning(
            "optimize_failed",
            error=type(e).__name__,
            detail=str(e),
            status=status.status_code,
        )
        return status
    except Exception:
        logger.exception(
            "optimize_unexpected_error",
            token_in=request.token_in,
            token_out=request.token_out,
        )
        body = ErrorResponse(error="InternalError", detail="Router raised an unexpected error")
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    logger.info(
        "returning_plan",
        steps=len(plan.steps),
        legs=len(plan.splits),
        expected_output=plan.expected_output,
    )
    return ExecutionPlanResponse.from_plan(plan)
