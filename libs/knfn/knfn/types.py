"""
Type definitions for the Knative Functions SDK
"""

import json as _json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class Visibility(Enum):
    """Network visibility of a function's Knative Service"""
    PUBLIC = "public"                # Routed through the external ingress
    CLUSTER_LOCAL = "cluster-local"  # Only reachable from inside the cluster


@dataclass
class ResourceSpec:
    """Resource specifications for a function"""
    memory: str = "256Mi"
    cpu: str = "100m"
    memory_limit: Optional[str] = None
    cpu_limit: Optional[str] = None

    def __post_init__(self):
        # Default limits to the requests if not specified
        if self.memory_limit is None:
            self.memory_limit = self.memory
        if self.cpu_limit is None:
            self.cpu_limit = self.cpu


@dataclass
class ScalingSpec:
    """Autoscaling hints emitted as Knative annotations"""
    min_instances: int = 0
    max_instances: int = 10
    container_concurrency: int = 0  # 0 = unlimited
    target_concurrency: int = 100
    scale_to_zero_retention: str = "0s"

    def __post_init__(self):
        if self.min_instances < 0:
            raise ValueError("min_instances must be >= 0")
        if self.max_instances and self.min_instances > self.max_instances:
            raise ValueError(
                f"min_instances ({self.min_instances}) exceeds max_instances ({self.max_instances})"
            )


@dataclass
class HttpTriggerSpec:
    """HTTP trigger configuration"""
    path: str
    methods: List[str] = field(default_factory=lambda: ["POST"])


@dataclass
class FunctionMetadata:
    """Complete function metadata extracted from decorators"""
    name: str
    handler: Callable
    module: str
    resources: ResourceSpec
    scaling: ScalingSpec
    http_trigger: Optional[HttpTriggerSpec] = None
    timeout: int = 30
    environment: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    visibility: Visibility = Visibility.PUBLIC


@dataclass
class Request:
    """Incoming request object passed to HTTP functions"""
    method: str
    path: str
    headers: Dict[str, str]
    query_params: Dict[str, str]
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (raises UnicodeDecodeError on bad bytes)"""
        return self.body.decode("utf-8")

    @property
    def json(self) -> Any:
        """Body parsed as JSON, or None when it is not JSON"""
        if not self.body:
            return None
        try:
            return _json.loads(self.body)
        except ValueError:
            return None


@dataclass
class Response:
    """Response object returned from functions"""
    body: Any
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    media_type: Optional[str] = None

    @classmethod
    def json(cls, data: Any, status_code: int = 200) -> "Response":
        """Create JSON response"""
        return cls(body=data, status_code=status_code, media_type="application/json")

    @classmethod
    def html(cls, markup: str, status_code: int = 200) -> "Response":
        """Create an HTML response"""
        return cls(body=markup, status_code=status_code, media_type="text/html; charset=utf-8")

    @classmethod
    def text(cls, content: str, status_code: int = 200) -> "Response":
        """Create a plain text response"""
        return cls(body=content, status_code=status_code, media_type="text/plain; charset=utf-8")

    @classmethod
    def empty(cls, status_code: int) -> "Response":
        """Create a response with no body"""
        return cls(body=None, status_code=status_code)

    @classmethod
    def error(cls, message: str, status_code: int = 500) -> "Response":
        """Create error response"""
        return cls.json({"error": message}, status_code=status_code)


@dataclass
class Context:
    """Execution context passed to functions"""
    function_name: str
    invocation_id: str
    timestamp: str
    timeout_remaining: int
    environment: Dict[str, str] = field(default_factory=dict)
