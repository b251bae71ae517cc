from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from markdown_it.common.utils import isMdAsciiPunct, unescapeAll

from .config import DEFAULT_CONFIG, ParserConfig
from .model import (
    Break,
    Code,
    Emphasis,
    Image,
    Link,
    Literal,
    RefLink,
    Span,
    Strong,
    Text,
    parse_size,
)

logger = logging.getLogger(__name__)

# ![alt](url "title" =WxH); the size only counts right before the closing paren.
_IMAGE = re.compile(
    r'!\[(?P<text>.*?)\]\((?P<url>.*?)(?:\s"(?P<title>.*?)")?(?:\s=(?P<size>[0-9xX%]*))?\)'
)
_LINK_TAIL = re.compile(r'\((?P<url>.*?)(?:\s"(?P<title>.*?)")?\)')
_REF_ID = re.compile(r"\[(?P<id>[^\[\]]*)\]")
_HARD_BREAK = re.compile(r" {2,}\n|\\\n")
# Plain characters, plus single spaces that cannot start a hard break.
_TEXT_RUN = re.compile(r"(?:[^\\`!\[*_ ]| (?! ))+")


def clean_destination(url: str) -> str:
    """Drop ``<...>`` wrapping and decode escapes/entities in a link target."""
    if len(url) >= 2 and url.startswith("<") and url.endswith(">"):
        url = url[1:-1]
    return unescapeAll(url)


def _match_brackets(text: str) -> Dict[int, int]:
    """Map every ``[`` to the index of its balancing ``]``."""
    pairs: Dict[int, int] = {}
    stack: List[int] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "[":
            stack.append(i)
        elif char == "]" and stack:
            pairs[stack.pop()] = i
        i += 1
    return pairs


class InlineParser:
    """Left-to-right tokenizer turning the text of one block into spans.

    Every recognizer is anchored at ``self.pos``: it either consumes a
    construct starting exactly there and returns its span, or returns None
    and leaves the position untouched.
    """

    def __init__(self, text: str, depth: int = 0, config: Optional[ParserConfig] = None):
        self.text = text
        self.pos = 0
        self.depth = depth
        self.config = config or DEFAULT_CONFIG
        self._brackets = _match_brackets(text)
        # Scan positions already known to lead to no closer, per (delimiter, width).
        self._dead_ends: Dict[Tuple[str, int], Set[int]] = {}

    def parse(self) -> List[Span]:
        if self.depth > self.config.max_depth:
            logger.debug("Inline nesting deeper than %d, keeping text literal", self.config.max_depth)
            return [Text(self.text)] if self.text else []

        spans: List[Span] = []
        pending: List[str] = []
        while self.pos < len(self.text):
            span = self._parse_span()
            if span is None:
                pending.append(self._consume_text())
                continue
            if pending:
                spans.append(Text("".join(pending)))
                pending = []
            spans.append(span)
        if pending:
            spans.append(Text("".join(pending)))
        return _trim(spans)

    def _parse_span(self) -> Span | None:
        char = self.text[self.pos]
        if char == "\\":
            return self._parse_escape() or self._parse_break()
        if char == "`":
            return self._parse_code()
        if char == "!":
            return self._parse_image()
        if char == "[":
            return self._parse_ref_link() or self._parse_link()
        if char in "*_":
            return self._parse_strong() or self._parse_emphasis()
        if char == " ":
            return self._parse_break()
        return None

    def _consume_text(self) -> str:
        start = self.pos
        match = _TEXT_RUN.match(self.text, start)
        if match:
            self.pos = match.end()
        elif self.text[start] == "`":
            # An unmatched backtick run stays literal as a whole.
            self.pos += self._run_length(start, "`")
        else:
            self.pos += 1
        return self.text[start : self.pos]

    def _parse_nested(self, text: str) -> List[Span]:
        return InlineParser(text, depth=self.depth + 1, config=self.config).parse()

    # Recognizers

    def _parse_escape(self) -> Span | None:
        nxt = self.pos + 1
        if nxt < len(self.text) and isMdAsciiPunct(ord(self.text[nxt])):
            self.pos += 2
            return Literal(self.text[nxt])
        return None

    def _parse_break(self) -> Span | None:
        match = _HARD_BREAK.match(self.text, self.pos)
        if match is None:
            return None
        self.pos = match.end()
        return Break()

    def _parse_code(self) -> Span | None:
        start = self.pos
        ticks = self._run_length(start, "`")
        closer = self._find_code_closer(start + ticks, ticks)
        if closer < 0:
            return None
        content = self.text[start + ticks : closer]
        if len(content) > 2 and content[0] == " " and content[-1] == " " and content.strip():
            content = content[1:-1]
        self.pos = closer + ticks
        return Code(content)

    def _parse_image(self) -> Span | None:
        match = _IMAGE.match(self.text, self.pos)
        if match is None:
            return None
        # Image captures are kept verbatim.
        size = match.group("size")
        self.pos = match.end()
        return Image(
            alt=match.group("text"),
            url=match.group("url"),
            title=match.group("title"),
            size=parse_size(size) if size is not None else None,
        )

    def _parse_ref_link(self) -> Span | None:
        start = self.pos
        close = self._brackets.get(start)
        if close is None:
            return None
        label = self.text[start + 1 : close]
        end = close + 1
        match = _REF_ID.match(self.text, end)
        if match:
            ref_id = match.group("id") or label
            end = match.end()
        elif self.text.startswith("(", end):
            return None
        else:
            ref_id = label
        if not ref_id.strip():
            return None
        self.pos = end
        return RefLink(content=self._parse_nested(label), id=ref_id, raw=self.text[start:end])

    def _parse_link(self) -> Span | None:
        start = self.pos
        close = self._brackets.get(start)
        if close is None:
            return None
        match = _LINK_TAIL.match(self.text, close + 1)
        if match is None:
            return None
        title = match.group("title")
        self.pos = match.end()
        return Link(
            content=self._parse_nested(self.text[start + 1 : close]),
            url=clean_destination(match.group("url")),
            title=unescapeAll(title) if title is not None else None,
        )

    def _parse_strong(self) -> Span | None:
        return self._parse_delimited(2, Strong)

    def _parse_emphasis(self) -> Span | None:
        return self._parse_delimited(1, Emphasis)

    def _parse_delimited(self, width: int, node) -> Span | None:
        start = self.pos
        delim = self.text[start]
        if not self.text.startswith(delim * width, start):
            return None
        if width == 1 and self.text.startswith(delim, start + 1):
            return None
        if not self._can_open(start, width):
            return None
        closer = self._find_closer(start, width)
        if closer < 0:
            return None
        self.pos = closer + width
        return node(self._parse_nested(self.text[start + width : closer]))

    # Scanning helpers

    def _run_length(self, index: int, char: str) -> int:
        end = index
        while end < len(self.text) and self.text[end] == char:
            end += 1
        return end - index

    def _find_code_closer(self, index: int, ticks: int) -> int:
        while True:
            index = self.text.find("`", index)
            if index < 0:
                return -1
            run = self._run_length(index, "`")
            if run == ticks:
                return index
            index += run

    def _can_open(self, index: int, width: int) -> bool:
        after = index + width
        if after >= len(self.text) or self.text[after].isspace():
            return False
        if self.text[index] == "_" and index > 0 and self.text[index - 1].isalnum():
            return False
        return True

    def _can_close(self, index: int, run: int) -> bool:
        if index == 0 or self.text[index - 1].isspace():
            return False
        after = index + run
        if self.text[index] == "_" and after < len(self.text) and self.text[after].isalnum():
            return False
        return True

    def _find_closer(self, start: int, width: int) -> int:
        """Index of the delimiter closing the run opened at ``start``, or -1.

        Code spans and escapes are skipped. While looking for a single
        delimiter, balanced double runs are stepped over as nested strong.

        The walk from any position is the same whichever opener started it,
        so once it reaches a position a failed walk already passed, it fails
        too. Those positions are remembered, keeping unclosed runs linear.
        """
        text = self.text
        delim = text[start]
        dead_ends = self._dead_ends.setdefault((delim, width), set())
        visited: List[int] = []
        i = start + width
        while i < len(text):
            if i in dead_ends:
                break
            if i > start + width:
                visited.append(i)
            char = text[i]
            if char == "\\":
                i += 2
                continue
            if char == "`":
                ticks = self._run_length(i, "`")
                end = self._find_code_closer(i + ticks, ticks)
                i = end + ticks if end >= 0 else i + ticks
                continue
            if char != delim:
                i += 1
                continue
            run = self._run_length(i, delim)
            closes = i > start + width and self._can_close(i, run)
            if width == 2:
                if run >= 2 and closes:
                    return i + run - 2
            elif run == 1:
                if closes:
                    return i
            else:
                if self._can_open(i, 2):
                    nested = self._find_closer(i, 2)
                    if nested >= 0:
                        i = nested + 2
                        continue
                if closes:
                    return i
            i += run
        dead_ends.update(visited)
        return -1


def _trim(spans: List[Span]) -> List[Span]:
    if spans and isinstance(spans[0], Text):
        head = spans[0].text.lstrip()
        spans = ([Text(head)] if head else []) + spans[1:]
    if spans and isinstance(spans[-1], Text):
        tail = spans[-1].text.rstrip()
        spans = spans[:-1] + ([Text(tail)] if tail else [])
    return spans


def parse_spans(text: str, depth: int = 0, config: Optional[ParserConfig] = None) -> List[Span]:
    """Tokenize the inline content of a single block."""
    return InlineParser(text, depth=depth, config=config).parse()


def parse_image(text: str) -> Optional[Tuple[Image, int]]:
    """Match an image at the very start of ``text``, returning it with its length."""
    parser = InlineParser(text)
    span = parser._parse_image()
    if span is None:
        return None
    return span, parser.pos
