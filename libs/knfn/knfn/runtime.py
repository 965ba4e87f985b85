"""
Runtime for Knative Functions

Creates a FastAPI application that routes requests to decorated functions.
Each function runs in its own Knative Service; the KNFN_FUNCTION env var
selects which one a pod serves.
"""

import asyncio
import functools
import inspect
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request as FastAPIRequest
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response as HTTPResponse

from .decorators import FunctionRegistry
from .types import Context, FunctionMetadata, Request, Response

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once per process (LOG_LEVEL, default INFO)"""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    title: str = "Knative Functions",
    version: str = "1.0.0",
    function_filter: Optional[str] = None,
) -> FastAPI:
    """
    Create a FastAPI application for running functions.

    Args:
        title: API title
        version: API version
        function_filter: If set, only run this specific function (for single-function pods)

    Returns:
        FastAPI application instance
    """
    app = FastAPI(title=title, version=version)

    target_function = function_filter or os.getenv("KNFN_FUNCTION")

    # Health endpoints
    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/ready")
    async def ready():
        return {"ready": True}

    @app.get("/live")
    async def live():
        return {"alive": True}

    @app.get("/_functions")
    async def list_functions():
        functions = FunctionRegistry.get_all()
        return {
            "functions": [
                {
                    "name": f.name,
                    "path": f.http_trigger.path if f.http_trigger else None,
                    "methods": f.http_trigger.methods if f.http_trigger else None,
                    "visibility": f.visibility.value,
                }
                for f in functions.values()
                if target_function is None or f.name == target_function
            ]
        }

    registered = 0
    for func_meta in FunctionRegistry.get_all().values():
        if target_function and func_meta.name != target_function:
            continue
        if func_meta.http_trigger:
            _register_http_function(app, func_meta)
            registered += 1

    if target_function and not registered:
        logger.warning(f"Function {target_function} is not registered; serving probes only")

    return app


def _register_http_function(app: FastAPI, func_meta: FunctionMetadata) -> None:
    """Register an HTTP-triggered function with FastAPI"""
    http_spec = func_meta.http_trigger
    if not http_spec:
        return

    async def handler(request: FastAPIRequest) -> HTTPResponse:
        """Generic handler that invokes the function"""
        invocation_id = str(uuid.uuid4())[:8]

        req = Request(
            method=request.method,
            path=str(request.url.path),
            headers=dict(request.headers),
            query_params=dict(request.query_params),
            body=await request.body(),
            path_params=dict(request.path_params),
        )

        ctx = Context(
            function_name=func_meta.name,
            invocation_id=invocation_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            timeout_remaining=func_meta.timeout,
            environment=dict(os.environ),
        )

        try:
            result = await _invoke_function(func_meta.handler, req, ctx)
        except Exception as e:
            logger.exception(f"Function {func_meta.name} failed [{invocation_id}]: {e}")
            return JSONResponse(
                content={"error": str(e), "function": func_meta.name},
                status_code=500,
            )

        logger.debug(f"Function {func_meta.name} completed [{invocation_id}]")
        return _to_http_response(result)

    handler.__name__ = f"handle_{func_meta.name}"

    for method in http_spec.methods:
        app.add_api_route(
            http_spec.path,
            handler,
            methods=[method],
            name=f"{func_meta.name}_{method.lower()}",
            tags=[func_meta.name],
        )


def _to_http_response(result: Any) -> HTTPResponse:
    """Map a function's return value onto a Starlette response"""
    if isinstance(result, Response):
        if result.body is None:
            return HTTPResponse(
                status_code=result.status_code,
                headers=result.headers,
                media_type=result.media_type,
            )
        if isinstance(result.body, (str, bytes)):
            return HTTPResponse(
                content=result.body,
                status_code=result.status_code,
                headers=result.headers,
                media_type=result.media_type or "text/plain; charset=utf-8",
            )
        return JSONResponse(
            content=result.body,
            status_code=result.status_code,
            headers=result.headers,
        )
    elif isinstance(result, (dict, list)):
        return JSONResponse(content=result)
    elif isinstance(result, str):
        return HTTPResponse(content=result, media_type="text/plain; charset=utf-8")
    elif result is None:
        return JSONResponse(content={"status": "ok"})
    else:
        return JSONResponse(content={"result": str(result)})


async def _invoke_function(func: Callable, request: Request, context: Context) -> Any:
    """Invoke a function with proper argument handling"""
    sig = inspect.signature(func)
    params = list(sig.parameters.keys())

    kwargs: Dict[str, Any] = {}
    for param in params:
        if param in ("request", "req"):
            kwargs[param] = request
        elif param in ("context", "ctx"):
            kwargs[param] = context
        elif param == "body":
            kwargs[param] = request.body

    if not params:
        call = func
    elif len(params) == 1 and params[0] not in kwargs:
        call = functools.partial(func, request)
    else:
        call = functools.partial(func, **kwargs)

    # Plain functions go to the thread pool so blocking work leaves the loop free
    if inspect.iscoroutinefunction(inspect.unwrap(func)):
        result = call()
    else:
        result = await run_in_threadpool(call)

    if asyncio.iscoroutine(result):
        return await result
    return result


def run_function(module_path: str, function_name: Optional[str] = None):
    """
    Run a function module as a standalone service.

    This is the entrypoint for function pods.

    Args:
        module_path: Python module path to import (e.g., "adocfn.functions")
        function_name: Specific function to run (optional)
    """
    import importlib
    import sys

    import uvicorn

    configure_logging()

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        importlib.import_module(module_path)
        logger.info(f"Loaded module: {module_path}")
    except ImportError as e:
        logger.error(f"Failed to import module {module_path}: {e}")
        raise

    target = function_name or os.getenv("KNFN_FUNCTION")

    app = create_app(
        title=f"Function: {target or 'all'}",
        function_filter=target,
    )

    port = int(os.getenv("PORT", "8080"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting function server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python -m knfn.runtime <module_path> [function_name]")
        sys.exit(1)

    module_path = sys.argv[1]
    function_name = sys.argv[2] if len(sys.argv) > 2 else None

    run_function(module_path, function_name)
