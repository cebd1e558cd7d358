"""
Markdown Renderer

Converts the small markdown subset the AI advisor writes (headings,
lists, bold/italic, links, code) into HTML for direct display.

DESIGN DECISION: This is a single line-by-line pass followed by inline
substitutions, not a general markdown parser. The advisor's output is
short and regular, and a full parser would render far more syntax than
we want to let through from a model.

The input is untrusted (it comes from an AI response), so:
- text is HTML-escaped before any markup is emitted
- links only render for http/https/mailto or relative URLs
- code content is protected from the bold/italic/link passes
- no input string can make render() raise
"""

import html
import re
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit


class ListState(str, Enum):
    """Which list container, if any, is currently open."""
    NONE = "none"
    UNORDERED = "unordered"
    ORDERED = "ordered"


_LIST_TAGS = {
    ListState.UNORDERED: "ul",
    ListState.ORDERED: "ol",
}

# Block patterns (matched per line)
_HEADING = re.compile(r"^(#{1,3}) (.*)$")
_UNORDERED_ITEM = re.compile(r"^\s*-\s(.*)$")
_ORDERED_ITEM = re.compile(r"^\s*\d+\.\s(.*)$")
_FENCE = "```"

# Inline patterns (applied to the joined output, in this order)
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"\*(.+?)\*")
_LINK = re.compile(r"\[(.*?)\]\((.*?)\)")
_FENCED_INLINE = re.compile(r"```(.+?)```")
_INLINE_CODE = re.compile(r"`([^`\n]+)`")

# Protected fragments are swapped out for NUL-delimited tokens.
# NUL is stripped from the input so tokens cannot be forged.
_TOKEN = "\x00{}\x00"
_TOKEN_PATTERN = re.compile(r"\x00(\d+)\x00")

_SAFE_LINK_SCHEMES = {"", "http", "https", "mailto"}


class MarkdownRenderer:
    """
    Stateless markdown-to-HTML renderer.

    Safe to share: all per-call state lives inside render().
    """

    def render(self, text: str) -> str:
        """Render markdown text to an HTML string."""
        if not text:
            return ""

        protected: list[str] = []

        def protect(fragment: str) -> str:
            protected.append(fragment)
            return _TOKEN.format(len(protected) - 1)

        lines = text.replace("\x00", "").replace("\r\n", "\n").split("\n")
        body = "\n".join(self._render_blocks(lines, protect))
        body = self._render_inline(body, protect)
        return self._restore(body, protected)

    # -------------------------------------------------------------------------
    # Block pass
    # -------------------------------------------------------------------------

    def _render_blocks(self, lines: list[str], protect) -> list[str]:
        out: list[str] = []
        state = ListState.NONE
        fence_lines: Optional[list[str]] = None
        fence_prefix = ""

        for raw in lines:
            stripped = raw.strip()

            if fence_lines is not None:
                if stripped.startswith(_FENCE):
                    out.append(fence_prefix + protect(self._code_block(fence_lines)))
                    fence_lines = None
                else:
                    fence_lines.append(raw)
                continue

            # A lone opening fence starts a multi-line code block.
            # "```code```" on one line is handled by the inline pass.
            if stripped.startswith(_FENCE) and stripped.count(_FENCE) == 1:
                fence_prefix = self._close_list(state)
                state = ListState.NONE
                fence_lines = []
                continue

            line = html.escape(raw)

            heading = _HEADING.match(line)
            if heading:
                level = len(heading.group(1))
                out.append(
                    f"{self._close_list(state)}<h{level}>{heading.group(2)}</h{level}>"
                )
                state = ListState.NONE
                continue

            item_state = None
            item = _UNORDERED_ITEM.match(line)
            if item:
                item_state = ListState.UNORDERED
            else:
                item = _ORDERED_ITEM.match(line)
                if item:
                    item_state = ListState.ORDERED

            if item_state is not None:
                prefix = ""
                if state != item_state:
                    prefix = f"{self._close_list(state)}<{_LIST_TAGS[item_state]}>"
                    state = item_state
                out.append(f"{prefix}<li>{item.group(1)}</li>")
                continue

            closing = self._close_list(state)
            state = ListState.NONE

            if not stripped:
                out.append(closing or raw)
            else:
                out.append(f"{closing}<p>{line}</p>")

        if fence_lines is not None:
            out.append(fence_prefix + protect(self._code_block(fence_lines)))

        if state != ListState.NONE:
            out.append(self._close_list(state))

        return out

    @staticmethod
    def _close_list(state: ListState) -> str:
        if state == ListState.NONE:
            return ""
        return f"</{_LIST_TAGS[state]}>"

    @staticmethod
    def _code_block(lines: list[str]) -> str:
        content = "\n".join(html.escape(line) for line in lines)
        return f"<pre><code>{content}</code></pre>"

    # -------------------------------------------------------------------------
    # Inline pass
    # -------------------------------------------------------------------------

    def _render_inline(self, text: str, protect) -> str:
        # Code first, so its content never reaches the later passes
        text = _FENCED_INLINE.sub(
            lambda m: protect(f"<pre><code>{m.group(1)}</code></pre>"), text
        )
        text = _INLINE_CODE.sub(
            lambda m: protect(f"<code>{m.group(1)}</code>"), text
        )

        text = _BOLD.sub(r"<strong>\1</strong>", text)
        text = _ITALIC.sub(r"<em>\1</em>", text)
        text = _LINK.sub(self._link, text)
        return text

    @staticmethod
    def _link(match: re.Match) -> str:
        label, url = match.group(1), match.group(2)
        if not _is_safe_url(url):
            return label
        return (
            f'<a href="{url}" target="_blank" '
            f'rel="noopener noreferrer">{label}</a>'
        )

    @staticmethod
    def _restore(text: str, protected: list[str]) -> str:
        def replace(match: re.Match) -> str:
            return _TOKEN_PATTERN.sub(replace, protected[int(match.group(1))])

        return _TOKEN_PATTERN.sub(replace, text)


def _is_safe_url(escaped_url: str) -> bool:
    url = html.unescape(escaped_url).strip()
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return False
    return scheme in _SAFE_LINK_SCHEMES


_default_renderer = MarkdownRenderer()


def render_markdown(text: str) -> str:
    """Render markdown with the shared default renderer."""
    return _default_renderer.render(text)
