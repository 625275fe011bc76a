"""Markdown rendering for question prompts authored as plain text.

Prompts are stored as HTML. Pasted or file-imported prompts are written in
markdown, so they are rendered once at import time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts markdown prompts into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment ("" for blank input)."""
        sanitized = markdown_text.strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized).strip()


renderer = MarkdownRenderer()
# Shared instance; MarkdownIt is safe for concurrent read-only renders.
