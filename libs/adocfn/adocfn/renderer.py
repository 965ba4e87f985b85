"""
Asciidoc rendering capability

Wraps the asciidoc (asciidoc-py) processor behind a small immutable value
that is created once per process and shared by every request handler.

The processor's safe mode also rejects the ``ifeval`` lines inside its own
HTML backend configuration, so documents are rendered in normal mode and
every construct that can run commands or read files is refused up front
(see ``check_document``). Attributes that the backend feeds into its own
``{include:}``/``{sys3:}`` references are locked from the command line so
a document cannot redefine them.
"""

import io
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from asciidoc import asciidoc as processor
from asciidoc.api import AsciiDocAPI

logger = logging.getLogger(__name__)

# Footer timestamps would make identical inputs render differently
DEFAULT_ATTRIBUTES: Dict[str, str] = {"footer-style": "none"}

# Undefined on the command line, which locks them against attribute entries
LOCKED_ATTRIBUTES = (
    "data-uri",
    "docinfo",
    "docinfo1",
    "docinfo2",
    "icons",
    "iconsdir",
    "imagesdir",
    "linkcss",
    "scriptsdir",
    "source-highlighter",
    "stylesdir",
    "stylesheet",
    "theme",
    "themedir",
)

_SYSTEM_NAMES = r"(?:sys[23]?|eval3?|include1?|template|ifeval)"

UNSAFE_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("system macro", re.compile(r"\b" + _SYSTEM_NAMES + r"::")),
    ("system attribute", re.compile(r"\{\s*" + _SYSTEM_NAMES + r"\s*:")),
    ("computed attribute name", re.compile(r"\{[\w-]*\{")),
    ("computed macro name", re.compile(r"\}[\w-]*::")),
    ("block filter", re.compile(r"(?m)^\[[^\]\n]*\bfilter\s*=")),
    (
        "filter style",
        re.compile(
            r"(?m)^\[\s*[\"']?(?:source|code|graphviz|latex|music|abc|lilypond|ditaa|aafigure|mscgen|plantuml)\b"
        ),
    ),
]

# asciidoc-py keeps the document being processed in module globals and
# points the process-wide sys.stdout at the output file while it runs.
# Only render() may call the processor, and only while holding this lock.
_processor_lock = threading.Lock()


class RenderError(Exception):
    """Raised when the Asciidoc processor cannot render a document"""


class UnsafeDocumentError(RenderError):
    """Raised for documents that ask the processor to run commands or read files"""


def check_document(text: str) -> None:
    """Refuse constructs that reach outside the document.

    Raises:
        UnsafeDocumentError: naming the first offending construct
    """
    for label, pattern in UNSAFE_PATTERNS:
        match = pattern.search(text)
        if match:
            line = text.count("\n", 0, match.start()) + 1
            raise UnsafeDocumentError(f"line {line}: {label} not allowed: {match.group(0).strip()}")


def parse_attributes(value: str) -> Dict[str, str]:
    """Parse "name=value,other=value2" into a dict; bare names map to ""."""
    attributes: Dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, attr_value = item.partition("=")
        attributes[name.strip()] = attr_value.strip()
    return attributes


@dataclass(frozen=True)
class AsciidocRenderer:
    """Renders Asciidoc source to a complete HTML document."""

    backend: str = "html5"
    attributes: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_ATTRIBUTES))

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @classmethod
    def from_env(cls) -> "AsciidocRenderer":
        """Build a renderer from ADOCFN_BACKEND and ADOCFN_ATTRIBUTES"""
        attributes = dict(DEFAULT_ATTRIBUTES)
        attributes.update(parse_attributes(os.getenv("ADOCFN_ATTRIBUTES", "")))
        return cls(
            backend=os.getenv("ADOCFN_BACKEND", "html5"),
            attributes=attributes,
        )

    def _api(self) -> AsciiDocAPI:
        api = AsciiDocAPI()
        attributes: Dict[str, Optional[str]] = {name: None for name in LOCKED_ATTRIBUTES}
        attributes.update(self.attributes)
        for name, value in attributes.items():
            api.attributes[name] = value
        return api

    def render(self, text: str) -> str:
        """Convert Asciidoc text to HTML.

        Raises:
            UnsafeDocumentError: if the document uses system macros or filters
            RenderError: if the processor reports a failure; the message is
                the processor's last diagnostic
        """
        check_document(text)

        api = self._api()
        infile = io.StringIO(text)
        outfile = io.StringIO()
        failure: Optional[Exception] = None
        with _processor_lock:
            try:
                api.execute(infile, outfile, backend=self.backend)
            except Exception as e:
                failure = e
            # AsciiDocAPI.messages goes stale after the processor resets itself
            messages = list(processor.message.messages)

        for message in messages:
            logger.debug(f"asciidoc: {message}")

        if failure is not None:
            detail = messages[-1] if messages else (str(failure) or type(failure).__name__)
            raise RenderError(detail) from failure

        return outfile.getvalue()
