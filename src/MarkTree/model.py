from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Union

if TYPE_CHECKING:
    from .references import ReferenceTable


class OrderedListType(enum.Enum):
    NUMERIC = "1"
    LOWERCASE = "a"
    UPPERCASE = "A"
    LOWERCASE_ROMAN = "i"
    UPPERCASE_ROMAN = "I"

    @classmethod
    def from_str(cls, marker: str) -> "OrderedListType":
        """Map a list marker (``"a"``, ``"I"``, ``"1"``...) to its numbering style."""
        try:
            return cls(marker)
        except ValueError:
            return cls.NUMERIC

    def to_str(self) -> str:
        return self.value


@dataclass(frozen=True)
class ObjectSize:
    """Image dimensions written as ``WIDTHxHEIGHT``; either side may be missing."""

    width: Optional[str] = None
    height: Optional[str] = None

    def as_text(self) -> str:
        if self.width is not None and self.height is not None:
            return f"{self.width}x{self.height}"
        if self.width is not None:
            return f"{self.width}x"
        if self.height is not None:
            return f"x{self.height}"
        return ""

    def as_html(self) -> str:
        attrs = []
        if self.width is not None:
            attrs.append(f'width="{self.width}"')
        if self.height is not None:
            attrs.append(f'height="{self.height}"')
        return " ".join(attrs)

    @classmethod
    def from_text(cls, text: str) -> ObjectSize | None:
        return parse_size(text)


def parse_size(text: str) -> ObjectSize | None:
    """Parse ``WIDTHxHEIGHT``, ``WIDTHx``, ``xHEIGHT`` or a bare ``WIDTH``.

    Values are kept as written (``50%`` or ``1A3`` are accepted). Returns None
    when neither side carries anything.
    """
    separator = -1
    for index, char in enumerate(text):
        if char in "xX":
            separator = index
            break
    if separator < 0:
        width = text.strip()
        return ObjectSize(width=width) if width else None
    width = text[:separator].strip()
    height = text[separator + 1 :].strip()
    if not width and not height:
        return None
    return ObjectSize(width=width or None, height=height or None)


# Inline nodes


@dataclass(frozen=True)
class Break:
    """Hard line break."""


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Code:
    text: str


@dataclass(frozen=True)
class Literal:
    """A single character emitted verbatim (escaped punctuation)."""

    char: str


@dataclass(frozen=True)
class Link:
    content: List["Span"]
    url: str
    title: str | None = None


@dataclass(frozen=True)
class RefLink:
    """Reference-style link awaiting resolution.

    ``raw`` is the exact source text of the construct; it replaces the link
    when ``id`` has no definition.
    """

    content: List["Span"]
    id: str
    raw: str


@dataclass(frozen=True)
class Image:
    alt: str
    url: str
    title: str | None = None
    size: ObjectSize | None = None


@dataclass(frozen=True)
class Emphasis:
    content: List["Span"]


@dataclass(frozen=True)
class Strong:
    content: List["Span"]


Span = Union[Break, Text, Code, Literal, Link, RefLink, Image, Emphasis, Strong]


# List items


@dataclass(frozen=True)
class SimpleItem:
    """Tight list item holding inline content only."""

    spans: List[Span]


@dataclass(frozen=True)
class ParagraphItem:
    """Loose list item holding full block content."""

    blocks: List["Block"]


ListItem = Union[SimpleItem, ParagraphItem]


# Block nodes


@dataclass(frozen=True)
class Header:
    spans: List[Span]
    level: int


@dataclass(frozen=True)
class Paragraph:
    spans: List[Span]


@dataclass(frozen=True)
class Blockquote:
    blocks: List["Block"]


@dataclass(frozen=True)
class CodeBlock:
    language: str | None
    code: str


@dataclass(frozen=True)
class LinkReference:
    id: str
    url: str
    title: str | None = None


@dataclass(frozen=True)
class OrderedList:
    items: List[ListItem]
    list_type: OrderedListType = OrderedListType.NUMERIC


@dataclass(frozen=True)
class UnorderedList:
    items: List[ListItem]


@dataclass(frozen=True)
class Raw:
    """Block passed through without markdown interpretation."""

    text: str


@dataclass(frozen=True)
class Hr:
    """Horizontal rule / thematic break."""


Block = Union[
    Header,
    Paragraph,
    Blockquote,
    CodeBlock,
    LinkReference,
    OrderedList,
    UnorderedList,
    Raw,
    Hr,
]


@dataclass(frozen=True)
class Document:
    blocks: List[Block]
    references: Optional["ReferenceTable"] = field(default=None, repr=False)
