from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from markdown_it.common.utils import unescapeAll

from .config import DEFAULT_CONFIG, ParserConfig
from .inline_parser import clean_destination, parse_spans
from .model import (
    Block,
    Blockquote,
    CodeBlock,
    Document,
    Header,
    Hr,
    LinkReference,
    ListItem,
    OrderedList,
    OrderedListType,
    Paragraph,
    ParagraphItem,
    Raw,
    SimpleItem,
    UnorderedList,
)
from .references import ReferenceTable, resolve_references

logger = logging.getLogger(__name__)

_ATX_HEADER = re.compile(r"^ {0,3}(?P<level>#+)(?:[ \t]+(?P<text>.*?))?[ \t]*$")
_ATX_CLOSING = re.compile(r"(?:^|[ \t]+)#+$")
_SETEXT_UNDERLINE = re.compile(r"^ {0,3}(?P<char>=|-)(?P=char)*[ \t]*$")
_HR = re.compile(r"^ {0,3}(?P<char>[-*_])(?:[ \t]*(?P=char)){2,}[ \t]*$")
_FENCE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})[ \t]*(?P<info>.*?)[ \t]*$")
_BLOCKQUOTE = re.compile(r"^ {0,3}> ?(?P<content>.*)$")
_REF_START = re.compile(r"^ {0,3}\[(?P<id>[^\[\]]+)\]:(?P<rest>.*)$")
_REF_DESTINATION = re.compile(
    r"""^[ \t]*(?P<url><[^<>]*>|\S+)(?:[ \t]+(?P<title>"[^"]*"|'[^']*'|\([^()]*\)))?[ \t]*$"""
)
_REF_TITLE = re.compile(r"""^[ \t]*(?P<title>"[^"]*"|'[^']*'|\([^()]*\))[ \t]*$""")
_BULLET = re.compile(r"^(?P<indent>[ \t]*)(?P<marker>[-+*])(?:(?P<gap>[ \t]+)(?P<content>.*))?$")
_ORDERED = re.compile(
    r"^(?P<indent>[ \t]*)(?P<marker>[0-9]{1,9}|[ivxlcdm]+|[IVXLCDM]+|[a-zA-Z])\."
    r"(?:(?P<gap>[ \t]+)(?P<content>.*))?$"
)

_BLOCK_TAGS = (
    "address|article|aside|blockquote|body|caption|center|colgroup|dd|details|dialog|div|dl|dt|"
    "fieldset|figcaption|figure|footer|form|h[1-6]|head|header|hr|html|iframe|legend|li|main|menu|"
    "nav|ol|p|pre|script|section|style|summary|table|tbody|td|tfoot|th|thead|tr|ul"
)
_HTML_BLOCK = re.compile(r"^ {0,3}(?:<!--|</?(?:%s)(?:[\s/>]|$))" % _BLOCK_TAGS, re.IGNORECASE)


@dataclass(frozen=True)
class _ListMarker:
    ordered: bool
    marker: str
    indent: int
    # Column where the item's content starts; continuation lines are dedented by it.
    offset: int
    content: str


def _is_blank(line: str) -> bool:
    return not line.strip()


def _indent_width(line: str, tab_size: int) -> int:
    width = 0
    for char in line:
        if char == " ":
            width += 1
        elif char == "\t":
            width += tab_size - width % tab_size
        else:
            break
    return width


def _dedent(line: str, columns: int, tab_size: int) -> str:
    """Strip up to ``columns`` columns of leading whitespace."""
    width = 0
    index = 0
    while index < len(line) and width < columns:
        char = line[index]
        if char == " ":
            width += 1
        elif char == "\t":
            step = tab_size - width % tab_size
            if width + step > columns:
                return " " * (width + step - columns) + line[index + 1 :]
            width += step
        else:
            break
        index += 1
    return line[index:]


def _match_list_marker(line: str, tab_size: int) -> _ListMarker | None:
    if _HR.match(line):
        return None
    for pattern, ordered in ((_BULLET, False), (_ORDERED, True)):
        match = pattern.match(line)
        if match is None:
            continue
        indent = _indent_width(match.group("indent"), tab_size)
        marker_end = indent + len(match.group("marker")) + (1 if ordered else 0)
        content = match.group("content") or ""
        if ordered and not match.group("marker").isdigit() and not content.strip():
            # A lone letter and period is prose, not an empty item.
            return None
        gap = len(match.group("gap") or "")
        if not content or gap > 4:
            # Empty item or indented code inside the item: content starts one column in.
            offset = marker_end + 1
            content = " " * (gap - 1) + content if content else ""
        else:
            offset = marker_end + gap
        return _ListMarker(ordered=ordered, marker=match.group("marker"), indent=indent, offset=offset, content=content)
    return None


class BlockParser:
    """Recursive-descent grouping of lines into block nodes.

    One instance parses one document. Link reference definitions found at any
    nesting level are collected in ``self.references``.
    """

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.references = ReferenceTable()

    def parse(self, text: str) -> List[Block]:
        return self._parse_lines(text.splitlines(), depth=0)

    def _parse_lines(self, lines: List[str], depth: int) -> List[Block]:
        if depth > self.config.max_depth:
            logger.debug("Block nesting deeper than %d, keeping %d lines raw", self.config.max_depth, len(lines))
            text = "\n".join(lines).strip("\n")
            return [Raw(text)] if text.strip() else []

        blocks: List[Block] = []
        paragraph: List[str] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                self._flush_paragraph(paragraph, blocks)
                i += 1
                continue

            result = self._parse_block(lines, i, depth, in_paragraph=bool(paragraph))
            if result is None:
                result = self._parse_setext_header(lines, i, paragraph)
            if result is None:
                paragraph.append(line)
                i += 1
                continue

            block, consumed = result
            self._flush_paragraph(paragraph, blocks)
            blocks.append(block)
            i += consumed

        self._flush_paragraph(paragraph, blocks)
        return blocks

    def _parse_block(self, lines: List[str], start: int, depth: int, in_paragraph: bool) -> Tuple[Block, int] | None:
        result = self._parse_atx_header(lines, start)
        if result is None:
            result = self._parse_hr(lines, start)
        if result is None:
            result = self._parse_fenced_code(lines, start)
        if result is None and not in_paragraph:
            result = self._parse_indented_code(lines, start)
        if result is None:
            result = self._parse_blockquote(lines, start, depth)
        if result is None:
            result = self._parse_html(lines, start)
        if result is None:
            result = self._parse_link_reference(lines, start)
        if result is None:
            result = self._parse_list(lines, start, depth)
        return result

    def _starts_block(self, line: str) -> bool:
        """Whether ``line`` opens a block that ends a lazily continued one."""
        return bool(
            _ATX_HEADER.match(line)
            or _HR.match(line)
            or _FENCE.match(line)
            or _BLOCKQUOTE.match(line)
            or _HTML_BLOCK.match(line)
            or _match_list_marker(line, self.config.tab_size)
        )

    def _flush_paragraph(self, paragraph: List[str], blocks: List[Block]) -> None:
        if not paragraph:
            return
        spans = parse_spans(_join_paragraph(paragraph), config=self.config)
        if spans:
            blocks.append(Paragraph(spans=spans))
        paragraph.clear()

    # Recognizers

    def _parse_atx_header(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        match = _ATX_HEADER.match(lines[start])
        if match is None:
            return None
        text = _ATX_CLOSING.sub("", match.group("text") or "")
        return Header(spans=parse_spans(text, config=self.config), level=len(match.group("level"))), 1

    def _parse_setext_header(self, lines: List[str], start: int, paragraph: List[str]) -> Tuple[Block, int] | None:
        if start + 1 >= len(lines):
            return None
        match = _SETEXT_UNDERLINE.match(lines[start + 1])
        if match is None:
            return None
        text = _join_paragraph(paragraph + [lines[start]])
        paragraph.clear()
        level = 1 if match.group("char") == "=" else 2
        return Header(spans=parse_spans(text, config=self.config), level=level), 2

    def _parse_hr(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        if _HR.match(lines[start]):
            return Hr(), 1
        return None

    def _parse_fenced_code(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        match = _FENCE.match(lines[start])
        if match is None:
            return None
        fence = match.group("fence")
        info = match.group("info")
        if fence[0] == "`" and "`" in info:
            return None
        closing = re.compile(r"^ {0,3}%s{%d,}[ \t]*$" % (re.escape(fence[0]), len(fence)))
        indent = len(match.group("indent"))
        body: List[str] = []
        i = start + 1
        while i < len(lines):
            if closing.match(lines[i]):
                i += 1
                break
            body.append(_dedent(lines[i], indent, self.config.tab_size))
            i += 1
        else:
            logger.debug("Unclosed code fence at line %d, captured to end of input", start + 1)
        language = info.split()[0] if info else None
        return CodeBlock(language=language, code="\n".join(body)), i - start

    def _parse_indented_code(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        tab_size = self.config.tab_size
        if _indent_width(lines[start], tab_size) < tab_size:
            return None
        body: List[str] = []
        end = start
        i = start
        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                body.append("")
            elif _indent_width(line, tab_size) >= tab_size:
                body.append(_dedent(line, tab_size, tab_size))
                end = i + 1
            else:
                break
            i += 1
        body = body[: end - start]
        return CodeBlock(language=None, code="\n".join(body)), end - start

    def _parse_blockquote(self, lines: List[str], start: int, depth: int) -> Tuple[Block, int] | None:
        if _BLOCKQUOTE.match(lines[start]) is None:
            return None
        content: List[str] = []
        lazy_allowed = False
        i = start
        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                break
            match = _BLOCKQUOTE.match(line)
            if match is not None:
                content.append(match.group("content"))
                lazy_allowed = not _is_blank(match.group("content"))
            elif lazy_allowed and not self._starts_block(line):
                content.append(line)
            else:
                break
            i += 1
        return Blockquote(blocks=self._parse_lines(content, depth + 1)), i - start

    def _parse_html(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        if _HTML_BLOCK.match(lines[start]) is None:
            return None
        end = start
        while end < len(lines) and not _is_blank(lines[end]):
            end += 1
        return Raw(text="\n".join(lines[start:end])), end - start

    def _parse_link_reference(self, lines: List[str], start: int) -> Tuple[Block, int] | None:
        match = _REF_START.match(lines[start])
        if match is None:
            return None
        rest = match.group("rest")
        consumed = 1
        if _is_blank(rest):
            if start + 1 >= len(lines):
                return None
            rest = lines[start + 1]
            consumed = 2
        destination = _REF_DESTINATION.match(rest)
        if destination is None:
            return None
        title = destination.group("title")
        if title is None and start + consumed < len(lines):
            wrapped = _REF_TITLE.match(lines[start + consumed])
            if wrapped is not None:
                title = wrapped.group("title")
                consumed += 1

        ref_id = match.group("id")
        url = clean_destination(destination.group("url"))
        if title is not None:
            title = unescapeAll(title[1:-1])
        self.references.add(ref_id, url, title)
        return LinkReference(id=ref_id, url=url, title=title), consumed

    def _parse_list(self, lines: List[str], start: int, depth: int) -> Tuple[Block, int] | None:
        tab_size = self.config.tab_size
        first = _match_list_marker(lines[start], tab_size)
        if first is None:
            return None

        contents: List[List[str]] = []
        loose = False
        marker: _ListMarker | None = first
        i = start
        while marker is not None and marker.ordered == first.ordered:
            content = [marker.content]
            i += 1
            after_blank = False
            while i < len(lines):
                line = lines[i]
                if _is_blank(line):
                    content.append("")
                    after_blank = True
                    i += 1
                    continue
                indent = _indent_width(line, tab_size)
                nested = _match_list_marker(line, tab_size)
                if indent >= marker.offset:
                    content.append(_dedent(line, marker.offset, tab_size))
                elif after_blank or nested is not None or self._starts_block(line):
                    break
                else:
                    content.append(line.lstrip())
                after_blank = False
                i += 1

            trailing_blanks = 0
            while len(content) > 1 and _is_blank(content[-1]):
                content.pop()
                trailing_blanks += 1
            contents.append(content)

            marker = _match_list_marker(lines[i], tab_size) if i < len(lines) else None
            if marker is not None and marker.ordered == first.ordered and trailing_blanks:
                loose = True

        items = [self._list_item(content, loose, depth) for content in contents]
        if first.ordered:
            list_type = OrderedListType.from_str(first.marker[0])
            return OrderedList(items=items, list_type=list_type), i - start
        return UnorderedList(items=items), i - start

    def _list_item(self, content: List[str], loose: bool, depth: int) -> ListItem:
        blocks = self._parse_lines(content, depth + 1)
        if not blocks:
            return SimpleItem(spans=[])
        if not loose and len(blocks) == 1 and isinstance(blocks[0], Paragraph):
            return SimpleItem(spans=blocks[0].spans)
        return ParagraphItem(blocks=blocks)


def _join_paragraph(lines: List[str]) -> str:
    """Join paragraph lines, keeping trailing double spaces that force a break."""
    joined: List[str] = []
    last = len(lines) - 1
    for index, line in enumerate(lines):
        stripped = line.strip()
        if index < last and line.endswith("  "):
            stripped += "  "
        joined.append(stripped)
    return "\n".join(joined)


def parse_blocks(text: str, config: Optional[ParserConfig] = None) -> List[Block]:
    """Parse ``text`` into blocks, leaving reference links unresolved."""
    return BlockParser(config).parse(text)


def parse_document(text: str, config: Optional[ParserConfig] = None) -> Document:
    parser = BlockParser(config)
    blocks = parser.parse(text)
    if parser.config.resolve_references:
        blocks = resolve_references(blocks, parser.references)
    logger.debug("Parsed %d blocks, %d link references", len(blocks), len(parser.references))
    return Document(blocks=blocks, references=parser.references)


def parse(text: str, config: Optional[ParserConfig] = None) -> List[Block]:
    """Parse markdown into a block tree with reference links resolved."""
    return parse_document(text, config).blocks
