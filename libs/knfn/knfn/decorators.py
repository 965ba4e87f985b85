"""
Decorators for the Knative Functions SDK

These decorators attach serving metadata to plain Python functions. The
runtime reads it to bind HTTP routes and the CLI reads it to write
Knative Service descriptors.
"""

import functools
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .types import (
    FunctionMetadata,
    HttpTriggerSpec,
    ResourceSpec,
    ScalingSpec,
    Visibility,
)

F = TypeVar("F", bound=Callable[..., Any])

# Global function registry
_registry: Dict[str, FunctionMetadata] = {}


class FunctionRegistry:
    """Registry of all decorated functions"""

    @staticmethod
    def get_all() -> Dict[str, FunctionMetadata]:
        """Get all registered functions"""
        return _registry.copy()

    @staticmethod
    def get(name: str) -> Optional[FunctionMetadata]:
        """Get function by name"""
        return _registry.get(name)

    @staticmethod
    def register(metadata: FunctionMetadata) -> None:
        """Register a function"""
        _registry[metadata.name] = metadata

    @staticmethod
    def clear() -> None:
        """Clear registry (for testing)"""
        _registry.clear()

    @staticmethod
    def list_names() -> List[str]:
        """List all function names"""
        return list(_registry.keys())


def serverless(
    _func: Optional[F] = None,
    *,
    memory: str = "256Mi",
    cpu: str = "100m",
    memory_limit: Optional[str] = None,
    cpu_limit: Optional[str] = None,
    min_instances: int = 0,
    max_instances: int = 10,
    container_concurrency: int = 0,
    target_concurrency: int = 100,
    scale_to_zero_retention: str = "0s",
    timeout: int = 30,
    environment: Optional[Dict[str, str]] = None,
    labels: Optional[Dict[str, str]] = None,
    visibility: str = "public",
) -> Callable[[F], F]:
    """
    Mark a function as serverless with resource specifications.

    This is the base decorator that must be applied to all functions, on
    top of the trigger decorator. It configures resource allocation,
    scaling behavior and network visibility, then registers the function.

    Args:
        memory: Memory request (e.g., "256Mi", "1Gi")
        cpu: CPU request (e.g., "100m", "1")
        memory_limit: Memory limit (defaults to memory request)
        cpu_limit: CPU limit (defaults to cpu request)
        min_instances: Minimum replicas (0 for scale-to-zero)
        max_instances: Maximum replicas
        container_concurrency: Hard limit of in-flight requests per pod (0 = unlimited)
        target_concurrency: Soft autoscaling target of in-flight requests per pod
        scale_to_zero_retention: How long the last pod stays after traffic stops
        timeout: Request timeout in seconds
        environment: Environment variables
        labels: Additional Kubernetes labels
        visibility: "public" (external ingress) or "cluster-local"

    Example:
        @serverless(memory="256Mi", min_instances=0)
        @http_trigger(path="/", methods=["POST"])
        def convert(request):
            return Response.text(request.text.upper())
    """

    def decorator(func: F) -> F:
        if not hasattr(func, "_knfn_metadata"):
            func._knfn_metadata = {}  # type: ignore

        func._knfn_metadata["resources"] = ResourceSpec(  # type: ignore
            memory=memory,
            cpu=cpu,
            memory_limit=memory_limit,
            cpu_limit=cpu_limit,
        )
        func._knfn_metadata["scaling"] = ScalingSpec(  # type: ignore
            min_instances=min_instances,
            max_instances=max_instances,
            container_concurrency=container_concurrency,
            target_concurrency=target_concurrency,
            scale_to_zero_retention=scale_to_zero_retention,
        )
        func._knfn_metadata["timeout"] = timeout  # type: ignore
        func._knfn_metadata["environment"] = environment or {}  # type: ignore
        func._knfn_metadata["labels"] = labels or {}  # type: ignore
        func._knfn_metadata["module"] = func.__module__  # type: ignore
        func._knfn_metadata["name"] = func.__name__  # type: ignore
        func._knfn_metadata["visibility"] = Visibility(visibility)  # type: ignore

        _finalize_registration(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        wrapper._knfn_metadata = func._knfn_metadata  # type: ignore
        return wrapper  # type: ignore

    if _func is not None:
        return decorator(_func)
    return decorator


def http_trigger(
    _func: Optional[F] = None,
    *,
    path: str = "/",
    methods: Optional[List[str]] = None,
) -> Callable[[F], F]:
    """
    Configure HTTP trigger for a function.

    Args:
        path: URL path for the function (e.g., "/", "/api/render")
        methods: Allowed HTTP methods (default: ["POST"])
    """

    def decorator(func: F) -> F:
        if not hasattr(func, "_knfn_metadata"):
            func._knfn_metadata = {}  # type: ignore

        func._knfn_metadata["http_trigger"] = HttpTriggerSpec(  # type: ignore
            path=path,
            methods=[m.upper() for m in (methods or ["POST"])],
        )

        # Registration happens in @serverless once all metadata is known

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return func(*args, **kwargs)

        wrapper._knfn_metadata = func._knfn_metadata  # type: ignore
        return wrapper  # type: ignore

    if _func is not None:
        return decorator(_func)
    return decorator


def _finalize_registration(func: Callable) -> None:
    """Finalize function registration after all decorators are applied"""
    meta = getattr(func, "_knfn_metadata", {})

    metadata = FunctionMetadata(
        name=meta.get("name", func.__name__),
        handler=func,
        module=meta.get("module", func.__module__),
        resources=meta.get("resources", ResourceSpec()),
        scaling=meta.get("scaling", ScalingSpec()),
        http_trigger=meta.get("http_trigger"),
        timeout=meta.get("timeout", 30),
        environment=meta.get("environment", {}),
        labels=meta.get("labels", {}),
        visibility=meta.get("visibility", Visibility.PUBLIC),
    )

    FunctionRegistry.register(metadata)
