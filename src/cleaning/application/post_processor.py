import html as html_lib
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.cleaning.domain.models import NormalizedContent
from src.config.logger_config import logger

STEP_CRUFT = "Removed remaining cruft"
STEP_FORMATTING = "Cleaned formatting"
STEP_MARKDOWN = "Converted to markdown"
STEP_FINAL = "Final cleanup"

MEDIA_TAGS: tuple[str, ...] = ("img", "video", "iframe", "svg", "picture", "audio")
SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template", "head", "title", "meta", "link"})
INLINE_TAGS = frozenset(
    {
        "a", "abbr", "b", "br", "cite", "code", "del", "em", "i", "img", "ins", "kbd",
        "label", "mark", "q", "s", "samp", "small", "span", "strong", "sub", "sup",
        "time", "u", "var",
    }
)
BOLD_TAGS = frozenset({"strong", "b"})
ITALIC_TAGS = frozenset({"em", "i"})
FORMATTING_TAGS: tuple[str, ...] = ("strong", "b", "em", "i")

TRACKING_IMG = re.compile(r"analytics|tracking|pixel", re.I)
AD_CAPTION = re.compile(r"^(advertisement|sponsored|ad)$", re.I)
FILLER_TEXT = re.compile(r"^[\s|.]*$")
WHITESPACE = re.compile(r"[ \t\r\f\v\n]+")
HEADING_LINE = re.compile(r"^#{1,6}\s")
LIST_LINE = re.compile(r"^\s*(?:[-*]|\d+\.)\s")


@dataclass(frozen=True)
class PostProcessorOptions:
    convert_to_markdown: bool = True
    preserve_tables: bool = True
    min_paragraph_length: int = 20
    remove_short_paragraphs: bool = False


class PostProcessor:
    def __init__(self, options: PostProcessorOptions | None = None) -> None:
        self.options = options or PostProcessorOptions()

    def process(self, content_html: str, url: str = "") -> NormalizedContent:
        content_html = content_html or ""
        steps: list[str] = []
        try:
            soup = BeautifulSoup(content_html, "lxml")
            self._remove_cruft(soup)
            steps.append(STEP_CRUFT)
            self._clean_formatting(soup)
            steps.append(STEP_FORMATTING)

            if self.options.convert_to_markdown:
                root = soup.body or soup
                text = _MarkdownRenderer(preserve_tables=self.options.preserve_tables).render(root)
                steps.append(STEP_MARKDOWN)
            else:
                root = soup.body or soup
                text = "".join(str(child) for child in root.children)

            text = self._final_cleanup(text)
            steps.append(STEP_FINAL)
        except Exception as exc:
            logger.exception("Post-processing failed for {}: {}", url or "<unknown>", exc)
            return NormalizedContent(
                text=content_html,
                steps=tuple(steps),
                success=False,
                error=str(exc),
                original_length=len(content_html),
                final_length=len(content_html),
            )

        return NormalizedContent(
            text=text,
            steps=tuple(steps),
            original_length=len(content_html),
            final_length=len(text),
        )

    def _remove_cruft(self, soup: BeautifulSoup) -> None:
        for img in soup.find_all("img"):
            attribute_text = " ".join(
                " ".join(value) if isinstance(value, list) else str(value) for value in img.attrs.values()
            )
            is_pixel = str(img.get("width", "")).strip() == "1" and str(img.get("height", "")).strip() == "1"
            if TRACKING_IMG.search(attribute_text) or is_pixel:
                img.extract()

        for link in soup.find_all("a"):
            if not link.get_text().strip() and link.find(MEDIA_TAGS) is None:
                link.extract()

        for caption in soup.find_all("figcaption"):
            if AD_CAPTION.match(caption.get_text().strip()):
                caption.extract()

        for div in soup.find_all("div"):
            if any(isinstance(child, Tag) for child in div.children):
                continue
            if FILLER_TEXT.match(div.get_text()):
                div.extract()

    def _clean_formatting(self, soup: BeautifulSoup) -> None:
        if soup.find("h1") is None:
            first_h2 = soup.find("h2")
            if first_h2 is not None:
                first_h2.name = "h1"

        for paragraph in soup.find_all("p"):
            children = [
                child
                for child in paragraph.children
                if not (isinstance(child, NavigableString) and not str(child).strip())
            ]
            if children and all(isinstance(child, Tag) and child.name == "br" for child in children):
                paragraph.extract()

        for family in (BOLD_TAGS, ITALIC_TAGS):
            for tag in soup.find_all(list(family)):
                if any(parent.name in family for parent in tag.parents):
                    tag.unwrap()

        for tag in soup.find_all(list(FORMATTING_TAGS)):
            if not tag.get_text().strip() and tag.find(MEDIA_TAGS) is None:
                tag.extract()

    def _final_cleanup(self, text: str) -> str:
        cleaned = html_lib.unescape(text).replace("\xa0", " ")
        cleaned = "\n".join(line.rstrip() for line in cleaned.split("\n"))
        cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()

        if self.options.remove_short_paragraphs:
            kept = [
                block
                for block in cleaned.split("\n\n")
                if len(block.strip()) >= self.options.min_paragraph_length
                or block.lstrip().startswith(("|", ">"))
                or HEADING_LINE.match(block)
                or LIST_LINE.match(block)
            ]
            cleaned = "\n\n".join(kept)
        return cleaned


class _MarkdownRenderer:
    def __init__(self, preserve_tables: bool = True) -> None:
        self.preserve_tables = preserve_tables

    def render(self, root: Tag) -> str:
        return "\n\n".join(block for block in self._blocks(root) if block.strip())

    def _blocks(self, node: Tag) -> list[str]:
        blocks: list[str] = []
        pending: list[str] = []

        def flush() -> None:
            paragraph = _tidy_inline("".join(pending))
            pending.clear()
            if paragraph:
                blocks.append(paragraph)

        for child in node.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                pending.append(self._inline(child))
                continue
            if not isinstance(child, Tag) or child.name in SKIPPED_TAGS:
                continue
            if child.name in INLINE_TAGS:
                pending.append(self._inline(child))
                continue
            flush()
            blocks.extend(self._block(child))
        flush()
        return blocks

    def _block(self, tag: Tag) -> list[str]:
        name = tag.name
        if name in ("h1", "h2", "h3", "h4", "h5", "h6"):
            text = _tidy_inline(self._inline_children(tag)).replace("\n", " ")
            return [f"{'#' * int(name[1])} {text}"] if text else []
        if name == "p":
            text = _tidy_inline(self._inline_children(tag))
            return [text] if text else []
        if name in ("ul", "ol"):
            rendered = self._list(tag, depth=0)
            return [rendered] if rendered else []
        if name == "table":
            rendered = self._table(tag) if self.preserve_tables else self._table_as_text(tag)
            return [rendered] if rendered else []
        if name == "blockquote":
            inner = "\n\n".join(self._blocks(tag))
            if not inner.strip():
                return []
            return ["\n".join(f"> {line}" if line.strip() else ">" for line in inner.split("\n"))]
        if name == "pre":
            code = tag.get_text().strip("\n")
            return [f"```\n{code}\n```"] if code.strip() else []
        if name == "hr":
            return ["---"]
        return self._blocks(tag)

    def _inline(self, node: Tag | NavigableString) -> str:
        if isinstance(node, Comment):
            return ""
        if isinstance(node, NavigableString):
            return WHITESPACE.sub(" ", str(node))
        name = node.name
        if name in SKIPPED_TAGS or name == "img":
            return ""
        if name == "br":
            return "\n"
        if name in BOLD_TAGS:
            return _wrap(self._inline_children(node), "**")
        if name in ITALIC_TAGS:
            return _wrap(self._inline_children(node), "*")
        if name == "code":
            code = node.get_text().strip()
            return f"`{code}`" if code else ""
        if name == "a":
            text = _tidy_inline(self._inline_children(node)).replace("\n", " ")
            href = node.get("href")
            if text and isinstance(href, str) and href.strip() and not href.startswith(("javascript:", "#")):
                return f"[{text}]({href.strip()})"
            return text
        if name in ("ul", "ol"):
            return "\n" + self._list(node, depth=0) + "\n"
        return self._inline_children(node)

    def _inline_children(self, tag: Tag) -> str:
        return "".join(self._inline(child) for child in tag.children)

    def _list(self, tag: Tag, depth: int) -> str:
        ordered = tag.name == "ol"
        lines: list[str] = []
        for index, item in enumerate(tag.find_all("li", recursive=False), start=1):
            parts: list[str] = []
            nested: list[str] = []
            for child in item.children:
                if isinstance(child, Tag) and child.name in ("ul", "ol"):
                    rendered = self._list(child, depth + 1)
                    if rendered:
                        nested.append(rendered)
                elif isinstance(child, Tag) and child.name not in INLINE_TAGS:
                    parts.append(" " + self._inline_children(child) + " ")
                else:
                    parts.append(self._inline(child))
            text = _tidy_inline("".join(parts)).replace("\n", " ")
            marker = f"{index}." if ordered else "-"
            if text:
                lines.append(f"{'  ' * depth}{marker} {text}")
            lines.extend(nested)
        return "\n".join(lines)

    def _rows(self, table: Tag) -> list[list[str]]:
        rows: list[list[str]] = []
        for row in table.find_all("tr"):
            if row.find_parent("table") is not table:
                continue
            cells = [
                _tidy_inline(self._inline_children(cell)).replace("\n", " ").replace("|", "\\|")
                for cell in row.find_all(["th", "td"], recursive=False)
            ]
            if cells:
                rows.append(cells)
        return rows

    def _table(self, table: Tag) -> str:
        rows = self._rows(table)
        if not rows:
            return ""
        columns = max(len(row) for row in rows)
        for row in rows:
            row.extend([""] * (columns - len(row)))
        widths = [max(3, *(len(row[column]) for row in rows)) for column in range(columns)]

        def line(cells: list[str]) -> str:
            return "| " + " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)) + " |"

        output = [line(rows[0]), "| " + " | ".join("-" * width for width in widths) + " |"]
        output.extend(line(row) for row in rows[1:])
        return "\n".join(output)

    def _table_as_text(self, table: Tag) -> str:
        return "\n".join(" ".join(cell for cell in row if cell) for row in self._rows(table))


def _wrap(inner: str, marker: str) -> str:
    stripped = inner.strip()
    if not stripped:
        return inner
    leading = " " if inner[:1].isspace() else ""
    trailing = " " if inner[-1:].isspace() else ""
    return f"{leading}{marker}{stripped}{marker}{trailing}"


def _tidy_inline(text: str) -> str:
    lines = [re.sub(r" {2,}", " ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()
