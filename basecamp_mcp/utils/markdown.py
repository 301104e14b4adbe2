"""
Convert Basecamp rich-text HTML into Markdown.

Basecamp stores message bodies, todo descriptions, documents and chat lines
as HTML produced by its Trix editor, with a few custom elements
(``bc-attachment``, ``mention``, ``bc-gallery``). Agents get Markdown only;
the output never contains an HTML tag.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    PageElement,
    ProcessingInstruction,
)

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_SKIPPED_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)
_DROPPED_TAGS = frozenset({"script", "style", "template"})

Handler = Callable[["MarkdownRenderer", Tag], str]
_HANDLERS: Dict[str, Handler] = {}


def _handles(*names: str) -> Callable[[Handler], Handler]:
    def register(func: Handler) -> Handler:
        for name in names:
            _HANDLERS[name] = func
        return func

    return register


class MarkdownRenderer:
    """Single-pass visitor over a parsed HTML tree.

    Text nodes render as their text, elements dispatch on tag name through
    ``_HANDLERS``; anything unregistered is unwrapped to its children.
    """

    def visit(self, node: Union[PageElement, BeautifulSoup]) -> str:
        if isinstance(node, NavigableString):
            if isinstance(node, _SKIPPED_STRINGS):
                return ""
            return str(node)
        if isinstance(node, Tag):
            handler = _HANDLERS.get((node.name or "").lower(), MarkdownRenderer.children)
            return handler(self, node)
        return ""

    def children(self, element: Tag) -> str:
        return "".join(self.visit(child) for child in element.children)

    # Basecamp-specific elements

    @_handles("bc-attachment")
    def _attachment(self, element: Tag) -> str:
        filename = element.get("filename") or ""
        content_type = element.get("content-type") or ""
        if filename or content_type:
            return f"[Attachment: {filename} ({content_type})]"
        return "[Attachment]"

    @_handles("mention")
    def _mention(self, element: Tag) -> str:
        return f"[@{element.get_text().strip()}]"

    @_handles("bc-gallery")
    def _gallery(self, element: Tag) -> str:
        return "[Gallery]"

    # Inline formatting

    @_handles("strong", "b")
    def _strong(self, element: Tag) -> str:
        return f"**{self.children(element)}**"

    @_handles("em", "i")
    def _emphasis(self, element: Tag) -> str:
        return f"*{self.children(element)}*"

    @_handles("a")
    def _link(self, element: Tag) -> str:
        href = element.get("href") or ""
        return f"[{self.children(element)}]({href})"

    @_handles("code")
    def _code(self, element: Tag) -> str:
        return f"`{self.children(element)}`"

    # Blocks

    @_handles("h1", "h2", "h3", "h4", "h5", "h6")
    def _heading(self, element: Tag) -> str:
        level = int(element.name[1])
        return f"{'#' * level} {self.children(element).strip()}\n\n"

    @_handles("p")
    def _paragraph(self, element: Tag) -> str:
        return f"{self.children(element)}\n\n"

    @_handles("br")
    def _line_break(self, element: Tag) -> str:
        return "\n"

    @_handles("div")
    def _division(self, element: Tag) -> str:
        # Trix wraps each paragraph in a div.
        inner = self.children(element)
        if inner and not inner.endswith("\n"):
            inner += "\n"
        return inner

    @_handles("pre")
    def _preformatted(self, element: Tag) -> str:
        return f"```\n{element.get_text()}\n```\n"

    @_handles("blockquote")
    def _quote(self, element: Tag) -> str:
        lines = self.children(element).strip().split("\n")
        quoted = "\n".join(f"> {line}" if line.strip() else ">" for line in lines)
        return f"{quoted}\n\n"

    @_handles("hr")
    def _rule(self, element: Tag) -> str:
        return "---\n"

    @_handles("ul")
    def _unordered(self, element: Tag) -> str:
        return self._list(element, ordered=False)

    @_handles("ol")
    def _ordered(self, element: Tag) -> str:
        return self._list(element, ordered=True)

    @_handles("li")
    def _stray_item(self, element: Tag) -> str:
        return f"- {self.children(element).strip()}\n"

    @_handles(*_DROPPED_TAGS)
    def _dropped(self, element: Tag) -> str:
        return ""

    def _list(self, element: Tag, *, ordered: bool) -> str:
        lines = []
        items = element.find_all("li", recursive=False)
        for index, item in enumerate(items, start=1):
            marker = f"{index}." if ordered else "-"
            first, *rest = self.children(item).strip().split("\n")
            lines.append(f"{marker} {first}")
            lines.extend(f"  {line}" for line in rest if line.strip())
        if not lines:
            return ""
        return "\n".join(lines) + "\n"


def html_to_markdown(html: Optional[str]) -> str:
    """Convert Basecamp HTML to Markdown; ``None`` or blank input gives ``""``."""
    if html is None or not html.strip():
        return ""

    try:
        soup = BeautifulSoup(html, "html.parser")
        result = MarkdownRenderer().visit(soup)
    except Exception:  # pragma: no cover - parser failure on hostile markup
        logger.warning("HTML parse failed; falling back to tag stripping", exc_info=True)
        result = html

    result = _TAG_RE.sub("", result)
    return _EXCESS_NEWLINES_RE.sub("\n\n", result)


__all__ = ["MarkdownRenderer", "html_to_markdown"]
