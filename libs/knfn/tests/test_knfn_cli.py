"""Tests for knfn CLI discovery and descriptor generation."""

import json
import sys
import textwrap

import pytest
import yaml

from knfn import FunctionRegistry
from knfn.cli import (
    discover_functions,
    generate_dockerfile,
    generate_knative_service,
    main,
)

SAMPLE_MODULE = textwrap.dedent(
    '''
    from knfn import Response, http_trigger, serverless


    @serverless(
        memory="128Mi",
        min_instances=0,
        max_instances=3,
        target_concurrency=5,
        timeout=20,
        visibility="cluster-local",
        environment={"MODE": "test"},
    )
    @http_trigger(path="/shout", methods=["post"])
    def shout(request):
        return Response.text(request.text.upper())


    @serverless(memory="256Mi", min_instances=1)
    @http_trigger(path="/", methods=["POST"])
    def root(request):
        return Response.text("root")
    '''
)


@pytest.fixture
def sample_module(tmp_path, monkeypatch):
    """Write an importable module holding two decorated functions."""
    (tmp_path / "knfn_sample_fns.py").write_text(SAMPLE_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    yield "knfn_sample_fns"
    FunctionRegistry.clear()


class TestDiscoverFunctions:
    def test_discovers_all_functions(self, sample_module):
        functions = discover_functions(sample_module)
        assert sorted(f.name for f in functions) == ["root", "shout"]

    def test_rediscovery_does_not_lose_functions(self, sample_module):
        discover_functions(sample_module)
        functions = discover_functions(sample_module)
        assert len(functions) == 2

    def test_repeated_discovery_keeps_sys_path_stable(self, sample_module, monkeypatch):
        monkeypatch.setattr(sys, "path", list(sys.path))
        discover_functions(sample_module)
        length = len(sys.path)
        for _ in range(3):
            discover_functions(sample_module)
        assert len(sys.path) == length


class TestGenerateKnativeService:
    def test_scale_to_zero_annotations(self, sample_module):
        funcs = {f.name: f for f in discover_functions(sample_module)}
        service = generate_knative_service(funcs["shout"], "demo", sample_module, namespace="fns")

        assert service["apiVersion"] == "serving.knative.dev/v1"
        assert service["kind"] == "Service"
        assert service["metadata"]["name"] == "demo-shout"
        assert service["metadata"]["namespace"] == "fns"
        assert service["metadata"]["labels"]["networking.knative.dev/visibility"] == "cluster-local"

        template = service["spec"]["template"]
        annotations = template["metadata"]["annotations"]
        assert annotations["autoscaling.knative.dev/min-scale"] == "0"
        assert annotations["autoscaling.knative.dev/max-scale"] == "3"
        assert annotations["autoscaling.knative.dev/target"] == "5"
        assert template["spec"]["timeoutSeconds"] == 20

        container = template["spec"]["containers"][0]
        assert container["image"] == "demo:latest"
        assert container["args"] == [sample_module]
        assert container["ports"] == [{"containerPort": 8080}]
        env = {e["name"]: e["value"] for e in container["env"]}
        assert env == {"KNFN_FUNCTION": "shout", "MODE": "test"}

    def test_public_function_has_no_visibility_label(self, sample_module):
        funcs = {f.name: f for f in discover_functions(sample_module)}
        service = generate_knative_service(
            funcs["root"], "demo", sample_module, registry="ghcr.io/acme"
        )
        assert "networking.knative.dev/visibility" not in service["metadata"]["labels"]
        assert service["spec"]["template"]["spec"]["containers"][0]["image"] == "ghcr.io/acme/demo:latest"

    def test_explicit_image_wins(self, sample_module):
        funcs = {f.name: f for f in discover_functions(sample_module)}
        service = generate_knative_service(
            funcs["root"], "demo", sample_module, image="demo:v2", registry="ghcr.io/acme"
        )
        assert service["spec"]["template"]["spec"]["containers"][0]["image"] == "demo:v2"


class TestDockerfile:
    def test_runs_module_on_8080(self):
        dockerfile = generate_dockerfile("demo", "adocfn.functions")
        assert "EXPOSE 8080" in dockerfile
        assert 'CMD ["python", "-m", "knfn.runtime", "adocfn.functions"]' in dockerfile


class TestMain:
    def test_list(self, sample_module, capsys):
        main(["list", sample_module])
        out = capsys.readouterr().out
        assert "shout (cluster-local) -> POST /shout" in out
        assert "root (public) -> POST /" in out

    def test_generate_writes_files(self, sample_module, tmp_path):
        output = tmp_path / "out"
        main(["generate", sample_module, "--name", "demo", "--output", str(output)])

        assert (output / "Dockerfile").exists()
        services = list(yaml.safe_load_all((output / "service.yaml").read_text()))
        assert sorted(s["metadata"]["name"] for s in services) == ["demo-root", "demo-shout"]

        summary = json.loads((output / "knfn.json").read_text())
        assert summary["app_name"] == "demo"
        assert {f["service"] for f in summary["functions"]} == {"demo-root", "demo-shout"}
