"""
Asciidoc to HTML serverless function

Run locally with ``python -m adocfn`` (listens on :8080) or deploy the
descriptors written by ``knfn generate adocfn.functions --name adocfn``.
"""

from .renderer import AsciidocRenderer, RenderError

__version__ = "0.1.0"
__all__ = ["AsciidocRenderer", "RenderError"]
