"""HTML document handle used by the enhancers.

Code blocks are ``<pre data-role="codeBlock" data-info="...">``
containers produced by :class:`~fencedocs.core.parser.MarkdownParser`.
Enhancers claim a block by setting its executor, splice rendered
fragments next to it, and mark it hidden; :meth:`Document.to_html`
drops hidden blocks from the final output.
"""

from __future__ import annotations

import copy
import logging

from bs4 import BeautifulSoup, Tag

from .block_info import parse_block_info
from .errors import BlockAttributeError
from .models import BlockInfo

logger = logging.getLogger(__name__)

CODE_BLOCK_ROLE = "codeBlock"
_EXECUTOR_ATTR = "data-executor"
_HIDDEN_ATTR = "data-hidden-by-enhancer"


def _info_from_tag(tag: Tag) -> BlockInfo:
    raw = tag.get("data-info") or ""
    try:
        return parse_block_info(raw)
    except BlockAttributeError as exc:
        language = raw.split()[0].lower() if raw.split() else ""
        logger.warning("Ignoring attributes of %r block: %s", language, exc)
        return BlockInfo(language=language)


class CodeBlockElement:
    """One fenced code block inside a :class:`Document`."""

    def __init__(self, tag: Tag) -> None:
        self.tag = tag
        self.info = _info_from_tag(tag)

    @property
    def code(self) -> str:
        return self.tag.get_text()

    @property
    def executor(self) -> str | None:
        return self.tag.get(_EXECUTOR_ATTR) or None

    @executor.setter
    def executor(self, name: str) -> None:
        self.tag[_EXECUTOR_ATTR] = name

    @property
    def hidden(self) -> bool:
        return self.tag.get(_HIDDEN_ATTR) == "true"

    @hidden.setter
    def hidden(self, value: bool) -> None:
        if value:
            self.tag[_HIDDEN_ATTR] = "true"
        elif _HIDDEN_ATTR in self.tag.attrs:
            del self.tag[_HIDDEN_ATTR]

    def insert_before(self, fragment: str) -> None:
        """Parse *fragment* and place its nodes right before this block."""
        for node in list(BeautifulSoup(fragment, "html.parser").contents):
            self.tag.insert_before(node)

    def insert_after(self, fragment: str) -> None:
        """Parse *fragment* and place its nodes right after this block."""
        anchor = self.tag
        for node in list(BeautifulSoup(fragment, "html.parser").contents):
            anchor.insert_after(node)
            anchor = node


class Document:
    """Mutable HTML document built from rendered markdown."""

    def __init__(self, html: str) -> None:
        self.soup = BeautifulSoup(html, "html.parser")

    def code_blocks(self) -> list[CodeBlockElement]:
        return [
            CodeBlockElement(tag)
            for tag in self.soup.find_all(attrs={"data-role": CODE_BLOCK_ROLE})
        ]

    def to_html(self, *, include_hidden: bool = False) -> str:
        """Serialize the document, without blocks hidden by an enhancer
        unless *include_hidden* is set.
        """
        if include_hidden:
            return str(self.soup)
        soup = copy.copy(self.soup)
        for tag in soup.find_all(attrs={_HIDDEN_ATTR: "true"}):
            tag.decompose()
        return str(soup)

    def __str__(self) -> str:
        return self.to_html(include_hidden=True)
