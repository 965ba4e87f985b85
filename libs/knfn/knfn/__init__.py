"""
Knative Functions SDK - decorated Python functions served as scale-to-zero Knative Services

Usage:
    from knfn import serverless, http_trigger, Response

    @serverless(
        memory="256Mi",
        cpu="100m",
        max_instances=10,
        min_instances=0,
        timeout=30
    )
    @http_trigger(path="/", methods=["POST"])
    def shout(request):
        return Response.text(request.text.upper())
"""

from .decorators import (
    serverless,
    http_trigger,
    FunctionRegistry,
)
from .runtime import create_app
from .types import Request, Response, Context

__version__ = "0.1.0"
__all__ = [
    "serverless",
    "http_trigger",
    "create_app",
    "Request",
    "Response",
    "Context",
    "FunctionRegistry",
]
