from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List

from markdown_it.common.utils import normalizeReference

from .model import (
    Block,
    Blockquote,
    Emphasis,
    Header,
    Link,
    ListItem,
    OrderedList,
    Paragraph,
    ParagraphItem,
    RefLink,
    SimpleItem,
    Span,
    Strong,
    Text,
    UnorderedList,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkDefinition:
    id: str
    url: str
    title: str | None = None


class ReferenceTable:
    """Link definitions collected while block parsing, looked up by label.

    Labels are matched case-insensitively with collapsed whitespace. The first
    definition of a label wins.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, LinkDefinition] = {}

    def add(self, id: str, url: str, title: str | None = None) -> bool:
        key = normalizeReference(id)
        if key in self._entries:
            logger.debug("Duplicate link reference %r ignored", id)
            return False
        self._entries[key] = LinkDefinition(id=id, url=url, title=title)
        return True

    def get(self, id: str) -> LinkDefinition | None:
        return self._entries.get(normalizeReference(id))

    def __contains__(self, id: object) -> bool:
        return isinstance(id, str) and normalizeReference(id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LinkDefinition]:
        return iter(self._entries.values())


def resolve_references(blocks: List[Block], table: ReferenceTable) -> List[Block]:
    """Return a copy of ``blocks`` with every reference link resolved.

    Known ids become ``Link`` spans; unknown ids fall back to their raw source
    text. Must run after block parsing has seen every definition.
    """
    return [_resolve_block(block, table) for block in blocks]


def _resolve_block(block: Block, table: ReferenceTable) -> Block:
    if isinstance(block, Header):
        return Header(spans=_resolve_spans(block.spans, table), level=block.level)
    if isinstance(block, Paragraph):
        return Paragraph(spans=_resolve_spans(block.spans, table))
    if isinstance(block, Blockquote):
        return Blockquote(blocks=resolve_references(block.blocks, table))
    if isinstance(block, OrderedList):
        return OrderedList(items=_resolve_items(block.items, table), list_type=block.list_type)
    if isinstance(block, UnorderedList):
        return UnorderedList(items=_resolve_items(block.items, table))
    # CodeBlock, LinkReference, Raw and Hr carry no spans.
    return block


def _resolve_items(items: List[ListItem], table: ReferenceTable) -> List[ListItem]:
    resolved: List[ListItem] = []
    for item in items:
        if isinstance(item, SimpleItem):
            resolved.append(SimpleItem(spans=_resolve_spans(item.spans, table)))
        elif isinstance(item, ParagraphItem):
            resolved.append(ParagraphItem(blocks=resolve_references(item.blocks, table)))
    return resolved


def _resolve_spans(spans: List[Span], table: ReferenceTable) -> List[Span]:
    resolved: List[Span] = []
    for span in spans:
        if isinstance(span, RefLink):
            definition = table.get(span.id)
            if definition is None:
                logger.debug("Unresolved link reference %r", span.id)
                resolved.append(Text(span.raw))
            else:
                resolved.append(Link(_resolve_spans(span.content, table), definition.url, definition.title))
        elif isinstance(span, Link):
            resolved.append(Link(_resolve_spans(span.content, table), span.url, span.title))
        elif isinstance(span, Emphasis):
            resolved.append(Emphasis(_resolve_spans(span.content, table)))
        elif isinstance(span, Strong):
            resolved.append(Strong(_resolve_spans(span.content, table)))
        else:
            resolved.append(span)
    return resolved
