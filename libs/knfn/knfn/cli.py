"""
CLI tool for Knative Functions

Discovers decorated functions and writes the Dockerfile and Knative Service
descriptors needed to deploy them. Nothing is built or applied here.
"""

import argparse
import importlib
import json
import os
import pkgutil
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .decorators import FunctionRegistry
from .runtime import configure_logging
from .types import FunctionMetadata, Visibility

DEFAULT_BASE_IMAGE = "python:3.12-slim"


def _import_fresh(module_path: str) -> None:
    """Import a module, re-executing it if it was already loaded"""
    if module_path in sys.modules:
        importlib.reload(sys.modules[module_path])
    else:
        importlib.import_module(module_path)


def discover_functions(module_path: str) -> List[FunctionMetadata]:
    """
    Discover all decorated functions in a module or package.

    Args:
        module_path: Dotted module path (e.g., "adocfn.functions"). Packages
            have every public submodule imported as well.

    Returns:
        List of discovered function metadata
    """
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    # Clear registry to avoid duplicates
    FunctionRegistry.clear()

    _import_fresh(module_path)
    module = sys.modules[module_path]

    if hasattr(module, "__path__"):
        for info in pkgutil.walk_packages(module.__path__, prefix=f"{module_path}."):
            if info.name.rsplit(".", 1)[-1].startswith("_"):
                continue
            try:
                _import_fresh(info.name)
            except Exception as e:
                print(f"Warning: Failed to import {info.name}: {e}")

    return list(FunctionRegistry.get_all().values())


def service_name(app_name: str, func: FunctionMetadata) -> str:
    """Kubernetes-safe name for a function's Service"""
    return f"{app_name}-{func.name}".replace("_", "-").lower()


def generate_dockerfile(
    app_name: str,
    module_path: str,
    base_image: str = DEFAULT_BASE_IMAGE,
) -> str:
    """Generate a Dockerfile that serves the function module on port 8080"""
    return f"""# Auto-generated Dockerfile for {app_name}
# Build from the project root

FROM {base_image}

WORKDIR /app

COPY . /app
RUN pip install --no-cache-dir /app

# Knative injects PORT; 8080 is the default it uses
ENV PORT=8080
EXPOSE 8080

# KNFN_FUNCTION (set per Service) selects the function this pod serves
CMD ["python", "-m", "knfn.runtime", "{module_path}"]
"""


def generate_knative_service(
    func: FunctionMetadata,
    app_name: str,
    module_path: str,
    namespace: str = "default",
    image: str = "",
    registry: str = "",
) -> Dict:
    """Generate a Knative Service (serving.knative.dev/v1) for a function"""
    name = service_name(app_name, func)
    full_image = f"{registry}/{app_name}:latest" if registry else f"{app_name}:latest"
    if image:
        full_image = image

    # PORT is reserved by Knative and must not be set here
    env_vars = [{"name": "KNFN_FUNCTION", "value": func.name}]
    for key, value in func.environment.items():
        env_vars.append({"name": key, "value": value})

    labels = {
        "app": name,
        "knfn.io/app": app_name,
        "knfn.io/function": func.name,
        **func.labels,
    }
    if func.visibility == Visibility.CLUSTER_LOCAL:
        labels["networking.knative.dev/visibility"] = "cluster-local"

    scaling = func.scaling
    annotations = {
        "autoscaling.knative.dev/min-scale": str(scaling.min_instances),
        "autoscaling.knative.dev/max-scale": str(scaling.max_instances),
        "autoscaling.knative.dev/target": str(scaling.target_concurrency),
        "autoscaling.knative.dev/scale-to-zero-pod-retention-period": scaling.scale_to_zero_retention,
    }

    return {
        "apiVersion": "serving.knative.dev/v1",
        "kind": "Service",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": labels,
        },
        "spec": {
            "template": {
                "metadata": {
                    "labels": {
                        "knfn.io/app": app_name,
                        "knfn.io/function": func.name,
                    },
                    "annotations": annotations,
                },
                "spec": {
                    "containerConcurrency": scaling.container_concurrency,
                    "timeoutSeconds": func.timeout,
                    "containers": [
                        {
                            "name": "function",
                            "image": full_image,
                            "command": ["python", "-m", "knfn.runtime"],
                            "args": [module_path],
                            "ports": [{"containerPort": 8080}],
                            "env": env_vars,
                            "resources": {
                                "requests": {
                                    "memory": func.resources.memory,
                                    "cpu": func.resources.cpu,
                                },
                                "limits": {
                                    "memory": func.resources.memory_limit,
                                    "cpu": func.resources.cpu_limit,
                                },
                            },
                            "readinessProbe": {
                                "httpGet": {"path": "/ready"},
                                "periodSeconds": 2,
                            },
                            "livenessProbe": {
                                "httpGet": {"path": "/live"},
                                "initialDelaySeconds": 5,
                                "periodSeconds": 10,
                            },
                        }
                    ],
                },
            },
        },
    }


def generate_all_manifests(
    module_path: str,
    app_name: str,
    output_dir: str,
    namespace: str = "default",
    registry: str = "",
    image: str = "",
) -> List[FunctionMetadata]:
    """Write Dockerfile, service.yaml and knfn.json for every discovered function"""
    functions = [f for f in discover_functions(module_path) if f.http_trigger]

    if not functions:
        print(f"No functions found in {module_path}")
        return []

    print(f"Discovered {len(functions)} functions:")
    for func in functions:
        print(f"  - {func.name} ({', '.join(func.http_trigger.methods)} {func.http_trigger.path})")

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    (output_path / "Dockerfile").write_text(generate_dockerfile(app_name, module_path))

    services = [
        generate_knative_service(func, app_name, module_path, namespace, image=image, registry=registry)
        for func in functions
    ]
    (output_path / "service.yaml").write_text(
        yaml.dump_all(services, default_flow_style=False, sort_keys=False)
    )

    config = {
        "app_name": app_name,
        "module": module_path,
        "namespace": namespace,
        "functions": [
            {
                "name": f.name,
                "service": service_name(app_name, f),
                "visibility": f.visibility.value,
                "path": f.http_trigger.path,
                "methods": f.http_trigger.methods,
                "resources": {
                    "memory": f.resources.memory,
                    "cpu": f.resources.cpu,
                },
                "scaling": {
                    "min": f.scaling.min_instances,
                    "max": f.scaling.max_instances,
                },
            }
            for f in functions
        ],
    }
    (output_path / "knfn.json").write_text(json.dumps(config, indent=2))

    print(f"\nGenerated files in {output_dir}:")
    print("  - Dockerfile")
    print("  - service.yaml")
    print("  - knfn.json")
    return functions


def main(argv: Optional[List[str]] = None):
    """CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Knative Functions CLI - run decorated functions and generate Knative Services"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    gen_parser = subparsers.add_parser("generate", help="Generate Dockerfile and Knative Services")
    gen_parser.add_argument("module", help="Module containing functions (e.g. adocfn.functions)")
    gen_parser.add_argument("--name", "-n", required=True, help="Application name")
    gen_parser.add_argument("--output", "-o", default="./generated", help="Output directory")
    gen_parser.add_argument("--namespace", default="default", help="Kubernetes namespace")
    gen_parser.add_argument("--registry", default="", help="Container registry URL")
    gen_parser.add_argument("--image", default="", help="Full image reference (overrides --registry)")

    list_parser = subparsers.add_parser("list", help="List discovered functions")
    list_parser.add_argument("module", help="Module containing functions")

    run_parser = subparsers.add_parser("run", help="Run functions locally")
    run_parser.add_argument("module", help="Module containing functions")
    run_parser.add_argument("--function", "-f", help="Specific function to run")
    run_parser.add_argument("--port", "-p", type=int, default=8080, help="Port to listen on")

    args = parser.parse_args(argv)

    configure_logging()

    if args.command == "generate":
        functions = generate_all_manifests(
            module_path=args.module,
            app_name=args.name,
            output_dir=args.output,
            namespace=args.namespace,
            registry=args.registry,
            image=args.image,
        )
        if not functions:
            sys.exit(1)

    elif args.command == "list":
        functions = discover_functions(args.module)
        for func in functions:
            trigger_info = ""
            if func.http_trigger:
                trigger_info = f" -> {','.join(func.http_trigger.methods)} {func.http_trigger.path}"
            print(f"{func.name} ({func.visibility.value}){trigger_info}")

    elif args.command == "run":
        os.environ["PORT"] = str(args.port)
        if args.function:
            os.environ["KNFN_FUNCTION"] = args.function

        from .runtime import run_function

        run_function(args.module, args.function)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
