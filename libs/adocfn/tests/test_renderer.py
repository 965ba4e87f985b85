"""Tests for the Asciidoc rendering capability."""

import dataclasses
import sys

import pytest

from adocfn.renderer import (
    AsciidocRenderer,
    RenderError,
    UnsafeDocumentError,
    check_document,
    parse_attributes,
)


@pytest.fixture
def renderer():
    return AsciidocRenderer()


class TestRender:
    def test_title_and_paragraph(self, renderer):
        html = renderer.render("= Hello\n\nWorld")
        assert "<h1>Hello</h1>" in html
        assert "<p>World</p>" in html

    def test_output_is_deterministic(self, renderer):
        source = "= Notes\n\n* one\n* two\n\nSome *bold* text."
        assert renderer.render(source) == renderer.render(source)

    def test_unterminated_block_reports_processor_message(self, renderer):
        with pytest.raises(RenderError) as excinfo:
            renderer.render("= Doc\n\n----\nnever closed")

        message = str(excinfo.value)
        assert not isinstance(excinfo.value, UnsafeDocumentError)
        assert "missing closing delimiter" in message
        assert "list index out of range" not in message

    def test_stdout_restored_after_render(self, renderer):
        before = sys.stdout
        renderer.render("= Hello\n\nWorld")
        assert sys.stdout is before

    def test_renders_again_after_failure(self, renderer):
        with pytest.raises(RenderError):
            renderer.render("----\nnever closed")
        assert "<h1>Hello</h1>" in renderer.render("= Hello\n\nWorld")


DANGEROUS_DOCUMENTS = [
    "sys::[id -un]",
    "sys2::[id -un]",
    "sys3::[id -un]",
    "eval::[1 + 1]",
    "eval3::[1 + 1]",
    "include::/etc/hostname[]",
    "include1::/etc/hostname[]",
    "template::[header]",
    "ifeval::[__import__('os').getpid() > 0]\nyes\nendif::[]",
    "Hello {sys:id -un}",
    "Hello {sys2:id -un}",
    "Hello { eval:1 + 1}",
    "Hello {include:/etc/hostname}",
    ":a: sys\n\n{{a}:id -un}",
    ":m: sys\n\n{m}::[id -un]",
    "[listing,filter=\"id -un\"]\n----\nx\n----",
    "[source,sh]\n----\nls\n----",
    "[\"graphviz\"]\n----\ndigraph { a -> b }\n----",
]


class TestUnsafeDocuments:
    @pytest.mark.parametrize("source", DANGEROUS_DOCUMENTS)
    def test_rejected_before_processing(self, renderer, monkeypatch, source):
        calls = []

        def record(self, *args, **kwargs):
            calls.append(args)

        monkeypatch.setattr("adocfn.renderer.AsciiDocAPI.execute", record)
        with pytest.raises(UnsafeDocumentError):
            renderer.render("= Doc\n\n" + source)
        assert calls == []

    def test_error_names_line(self):
        with pytest.raises(UnsafeDocumentError, match=r"line 3: system macro"):
            check_document("= Doc\n\ninclude::/etc/hostname[]")

    @pytest.mark.parametrize(
        "source",
        [
            "= Doc\n\nUse {counter:n} and {revnumber}.",
            "= Doc\n\n[NOTE]\nA system:: label in running text.",
            "= Doc\n\n----\nplain listing\n----",
            "= Doc\n\nThe word filter=on in a paragraph.",
        ],
    )
    def test_ordinary_documents_pass(self, source):
        check_document(source)

    def test_stylesheet_attribute_cannot_embed_files(self, renderer, tmp_path):
        secret = tmp_path / "secret.css"
        secret.write_text("SECRET-MARKER-42")
        html = renderer.render(f"= Doc\n:stylesheet: {secret}\n:data-uri:\n\nbody")
        assert "SECRET-MARKER-42" not in html
        assert "<p>body</p>" in html


class TestRendererValue:
    def test_frozen(self, renderer):
        with pytest.raises(dataclasses.FrozenInstanceError):
            renderer.backend = "xhtml11"

    def test_attributes_read_only(self, renderer):
        with pytest.raises(TypeError):
            renderer.attributes["icons"] = ""
        assert renderer.attributes["footer-style"] == "none"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ADOCFN_BACKEND", "xhtml11")
        monkeypatch.setenv("ADOCFN_ATTRIBUTES", "icons, toc=left")
        renderer = AsciidocRenderer.from_env()
        assert renderer.backend == "xhtml11"
        assert dict(renderer.attributes) == {"footer-style": "none", "icons": "", "toc": "left"}

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.delenv("ADOCFN_BACKEND", raising=False)
        monkeypatch.delenv("ADOCFN_ATTRIBUTES", raising=False)
        assert AsciidocRenderer.from_env() == AsciidocRenderer()


class TestParseAttributes:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("", {}),
            ("toc", {"toc": ""}),
            ("a=1,b=2", {"a": "1", "b": "2"}),
            (" a = x , ,b", {"a": "x", "b": ""}),
        ],
    )
    def test_parse(self, value, expected):
        assert parse_attributes(value) == expected
