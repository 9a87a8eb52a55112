"""HTML to Markdown rendering.

Turns a decoded HTML document into a flat Markdown approximation that is
stable enough to diff line by line: headings, paragraphs, lists, emphasis,
code, quotes, tables, links and images. Link and image targets are resolved
to absolute URLs against the page URL, or the document's ``<base href>`` when
it has one.

Rendering is a pure function of ``(html, base_url)``. Malformed markup is
never an error: lxml closes implied end tags and recovers whatever structure
it can. A tree nested too deeply for the converter is rendered as plain text.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

log = structlog.get_logger()

_SKIP_TAGS = frozenset(
    {
        "head",
        "script",
        "style",
        "noscript",
        "template",
        "svg",
        "canvas",
        "iframe",
        "object",
        "embed",
    }
)

_BLOCK_TAGS = frozenset(
    {
        "address",
        "article",
        "aside",
        "body",
        "caption",
        "center",
        "dd",
        "details",
        "dialog",
        "div",
        "dl",
        "dt",
        "fieldset",
        "figcaption",
        "figure",
        "footer",
        "form",
        "header",
        "hgroup",
        "html",
        "legend",
        "li",
        "main",
        "nav",
        "p",
        "section",
        "summary",
    }
)

_LIST_TAGS = frozenset({"ul", "ol", "menu"})

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_LANGUAGE_CLASS_RE = re.compile(r"^(?:language|lang)-(.+)$")


def render_html(html: str, base_url: str) -> str:
    """Render ``html`` as Markdown, resolving links against ``base_url``."""
    soup = BeautifulSoup(html, "lxml")

    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        base_url = urljoin(base_url, str(base["href"]).strip())

    try:
        markdown = _MarkdownRenderer(base_url).render(soup)
    except RecursionError:
        log.warning("render_fallback", reason="nesting_too_deep", base_url=base_url)
        markdown = _plain_text(soup)
    markdown = _TRAILING_WS_RE.sub("", markdown)
    markdown = _BLANK_LINES_RE.sub("\n\n", markdown)
    return markdown.strip()


class _MarkdownRenderer:
    """Recursive converter; one ``_convert_<tag>`` method per special tag."""

    def __init__(self, base_url: str) -> None:
        self._base_url = base_url

    def render(self, soup: BeautifulSoup) -> str:
        return self._children(soup)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _convert(self, node: object) -> str:
        if isinstance(node, Tag):
            if node.name in _SKIP_TAGS:
                return ""
            handler = getattr(self, f"_convert_{node.name}", None)
            if handler is not None:
                return handler(node)
            if node.name in _BLOCK_TAGS:
                return _block(self._children(node))
            return self._children(node)

        # Comments, doctypes, CDATA and processing instructions
        if isinstance(node, PreformattedString):
            return ""
        if isinstance(node, NavigableString):
            return _WHITESPACE_RE.sub(" ", str(node))
        return ""

    def _children(self, node: Tag) -> str:
        return _join(self._convert(child) for child in node.children)

    def _resolve(self, target: str) -> str:
        url = urljoin(self._base_url, target.strip())
        return f"<{url}>" if " " in url else url

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _heading(self, node: Tag, level: int) -> str:
        text = _WHITESPACE_RE.sub(" ", self._children(node)).strip()
        if not text:
            return ""
        return _block(f"{'#' * level} {text}")

    def _convert_h1(self, node: Tag) -> str:
        return self._heading(node, 1)

    def _convert_h2(self, node: Tag) -> str:
        return self._heading(node, 2)

    def _convert_h3(self, node: Tag) -> str:
        return self._heading(node, 3)

    def _convert_h4(self, node: Tag) -> str:
        return self._heading(node, 4)

    def _convert_h5(self, node: Tag) -> str:
        return self._heading(node, 5)

    def _convert_h6(self, node: Tag) -> str:
        return self._heading(node, 6)

    def _convert_hr(self, node: Tag) -> str:
        return "\n\n* * *\n\n"

    def _convert_br(self, node: Tag) -> str:
        return "\n"

    def _convert_blockquote(self, node: Tag) -> str:
        content = _collapse_blank_lines(self._children(node).strip())
        if not content:
            return ""
        quoted = "\n".join(f"> {line}" if line else ">" for line in content.split("\n"))
        return _block(quoted)

    def _convert_pre(self, node: Tag) -> str:
        code = node.get_text()
        # A newline right after <pre> is not part of the content.
        code = code.removeprefix("\r\n").removeprefix("\n").rstrip()

        language = ""
        code_tag = node.find("code")
        for candidate in (node, code_tag):
            if not isinstance(candidate, Tag):
                continue
            for css_class in candidate.get_attribute_list("class"):
                match = _LANGUAGE_CLASS_RE.match(css_class or "")
                if match:
                    language = match.group(1)
                    break
            if language:
                break

        fence = "```"
        while fence in code:
            fence += "`"
        return f"\n\n{fence}{language}\n{code}\n{fence}\n\n"

    def _convert_table(self, node: Tag) -> str:
        rows: list[list[str]] = []
        for row in node.find_all("tr"):
            if row.find_parent("table") is not node:
                continue  # Belongs to a nested table
            cells = [
                _WHITESPACE_RE.sub(" ", self._children(cell)).strip().replace("|", "\\|")
                for cell in row.find_all(["td", "th"], recursive=False)
            ]
            if cells:
                rows.append(cells)
        if not rows:
            return ""

        width = max(len(cells) for cells in rows)
        rows = [cells + [""] * (width - len(cells)) for cells in rows]
        lines = [_table_row(rows[0]), _table_row(["---"] * width)]
        lines.extend(_table_row(cells) for cells in rows[1:])
        return _block("\n".join(lines))

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def _list(self, node: Tag, *, ordered: bool) -> str:
        try:
            number = int(str(node.get("start", "1")))
        except ValueError:
            number = 1

        items: list[str] = []
        for child in node.children:
            if isinstance(child, Tag) and child.name == "li":
                marker = f"{number}. " if ordered else "* "
                number += 1
                items.append(self._list_item(child, marker))
                continue

            # Stray content, typically a nested list outside any <li>
            text = _collapse_blank_lines(self._convert(child).strip())
            if not text:
                continue
            if items:
                items[-1] += "\n" + _indent(text, "  ")
            else:
                items.append(text)

        if not items:
            return ""
        return _block("\n".join(items))

    def _list_item(self, node: Tag, marker: str) -> str:
        parts: list[str] = []
        for child in node.children:
            if isinstance(child, Tag) and child.name in _LIST_TAGS:
                # Keep nested lists tight against their parent item.
                parts.append("\n" + self._convert(child).strip() + "\n")
            else:
                parts.append(self._convert(child))

        content = _collapse_blank_lines(_join(parts).strip())
        if not content:
            return marker.rstrip()
        first, _, rest = content.partition("\n")
        if not rest:
            return marker + first
        return marker + first + "\n" + _indent(rest, " " * len(marker))

    def _convert_ul(self, node: Tag) -> str:
        return self._list(node, ordered=False)

    def _convert_menu(self, node: Tag) -> str:
        return self._list(node, ordered=False)

    def _convert_ol(self, node: Tag) -> str:
        return self._list(node, ordered=True)

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def _wrap(self, node: Tag, marker: str) -> str:
        text = self._children(node)
        prefix, body, suffix = _chomp(text)
        if not body:
            return " " if text else ""
        return f"{prefix}{marker}{body}{marker}{suffix}"

    def _convert_strong(self, node: Tag) -> str:
        return self._wrap(node, "**")

    def _convert_b(self, node: Tag) -> str:
        return self._wrap(node, "**")

    def _convert_em(self, node: Tag) -> str:
        return self._wrap(node, "_")

    def _convert_i(self, node: Tag) -> str:
        return self._wrap(node, "_")

    def _convert_del(self, node: Tag) -> str:
        return self._wrap(node, "~~")

    def _convert_s(self, node: Tag) -> str:
        return self._wrap(node, "~~")

    def _convert_strike(self, node: Tag) -> str:
        return self._wrap(node, "~~")

    def _convert_q(self, node: Tag) -> str:
        return self._wrap(node, '"')

    def _convert_code(self, node: Tag) -> str:
        text = _WHITESPACE_RE.sub(" ", node.get_text())
        if not text.strip():
            return ""
        if "`" in text:
            return f"`` {text} ``"
        return f"`{text}`"

    def _convert_a(self, node: Tag) -> str:
        text = self._children(node)
        href = node.get("href")
        if not isinstance(href, str) or not href.strip():
            return text

        prefix, body, suffix = _chomp(text)
        if not body:
            return " " if text else ""
        body = body.replace("\n", " ")
        return f"{prefix}[{body}]({self._resolve(href)}{_title(node)}){suffix}"

    def _convert_img(self, node: Tag) -> str:
        src = node.get("src")
        if not isinstance(src, str) or not src.strip():
            return ""
        alt = _WHITESPACE_RE.sub(" ", str(node.get("alt", ""))).strip()
        return f"![{alt}]({self._resolve(src)}{_title(node)})"


def _join(parts: Iterable[str]) -> str:
    """Concatenate rendered fragments, dropping spaces after whitespace."""
    out: list[str] = []
    for part in parts:
        if out and out[-1].endswith((" ", "\n")):
            part = part.lstrip(" ")
        if part:
            out.append(part)
    return "".join(out)


def _block(text: str) -> str:
    text = text.strip()
    if not text:
        return ""
    return f"\n\n{text}\n\n"


def _chomp(text: str) -> tuple[str, str, str]:
    """Split surrounding whitespace off inline content as single spaces."""
    prefix = " " if text[:1].isspace() else ""
    suffix = " " if text[-1:].isspace() else ""
    return prefix, text.strip(), suffix


def _collapse_blank_lines(text: str) -> str:
    return _BLANK_LINES_RE.sub("\n\n", text)


def _indent(text: str, indent: str) -> str:
    return "\n".join(indent + line if line else "" for line in text.split("\n"))


def _table_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _title(node: Tag) -> str:
    title = node.get("title")
    if not isinstance(title, str) or not title.strip():
        return ""
    return ' "' + title.strip().replace('"', '\\"') + '"'


def _plain_text(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(sorted(_SKIP_TAGS)):
        if not tag.decomposed:  # Already gone with an enclosing skipped tag
            tag.decompose()
    lines = (_WHITESPACE_RE.sub(" ", line).strip() for line in soup.get_text("\n").split("\n"))
    return "\n\n".join(line for line in lines if line)
