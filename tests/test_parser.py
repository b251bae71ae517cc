import dataclasses
import textwrap

import pytest

from MarkTree import markdown_parser
from MarkTree.config import ParserConfig
from MarkTree.model import (
    Blockquote,
    Break,
    Code,
    CodeBlock,
    Emphasis,
    Header,
    Hr,
    Link,
    LinkReference,
    OrderedList,
    OrderedListType,
    Paragraph,
    ParagraphItem,
    Raw,
    RefLink,
    SimpleItem,
    Strong,
    Text,
    UnorderedList,
)


def test_parse_blocks_and_inline():
    md_text = """
# Introduction

Text with *italic*, **bold** and `code`.

- First item
- Second item

---

```python
print("hi")
```
"""
    blocks = markdown_parser.parse(md_text)
    assert blocks == [
        Header(spans=[Text("Introduction")], level=1),
        Paragraph(
            spans=[
                Text("Text with "),
                Emphasis([Text("italic")]),
                Text(", "),
                Strong([Text("bold")]),
                Text(" and "),
                Code("code"),
                Text("."),
            ]
        ),
        UnorderedList(items=[SimpleItem([Text("First item")]), SimpleItem([Text("Second item")])]),
        Hr(),
        CodeBlock(language="python", code='print("hi")'),
    ]


def test_header_level_counts_markers():
    blocks = markdown_parser.parse("#### Deep ####\n####### Seven\n#")
    assert blocks == [
        Header(spans=[Text("Deep")], level=4),
        Header(spans=[Text("Seven")], level=7),
        Header(spans=[], level=1),
    ]


def test_hash_without_space_is_text():
    assert markdown_parser.parse("#hashtag") == [Paragraph([Text("#hashtag")])]


def test_setext_headers():
    blocks = markdown_parser.parse("Title\n=====\n\nSub *title*\n---")
    assert blocks == [
        Header(spans=[Text("Title")], level=1),
        Header(spans=[Text("Sub "), Emphasis([Text("title")])], level=2),
    ]


def test_rule_after_blank_line():
    blocks = markdown_parser.parse("para\n\n---\n\n* * *\n___")
    assert blocks == [Paragraph([Text("para")]), Hr(), Hr(), Hr()]


def test_paragraph_lines_and_breaks():
    blocks = markdown_parser.parse("line one\n   line two  \nline three\\\nend\n\nnext")
    assert blocks == [
        Paragraph([Text("line one\nline two"), Break(), Text("line three"), Break(), Text("end")]),
        Paragraph([Text("next")]),
    ]


def test_blockquote_recurses():
    md_text = textwrap.dedent(
        """
        > # Quoted
        > text
        lazy line
        > > inner

        after
        """
    )
    blocks = markdown_parser.parse(md_text)
    assert blocks == [
        Blockquote(
            [
                Header([Text("Quoted")], 1),
                Paragraph([Text("text\nlazy line")]),
                Blockquote([Paragraph([Text("inner")])]),
            ]
        ),
        Paragraph([Text("after")]),
    ]


def test_fenced_code_is_not_interpreted():
    blocks = markdown_parser.parse("~~~ rust extra\n# not a header\n*x*\n~~~\ntail")
    assert blocks == [
        CodeBlock(language="rust", code="# not a header\n*x*"),
        Paragraph([Text("tail")]),
    ]


def test_unclosed_fence_runs_to_end():
    blocks = markdown_parser.parse("text\n```\ncode\n\nmore")
    assert blocks == [Paragraph([Text("text")]), CodeBlock(language=None, code="code\n\nmore")]


def test_short_closing_fence_does_not_close():
    blocks = markdown_parser.parse("````\n```\n````")
    assert blocks == [CodeBlock(language=None, code="```")]


def test_indented_code_block():
    blocks = markdown_parser.parse("    x = 1\n\n    y = 2\n\npara\n    still para")
    assert blocks == [
        CodeBlock(language=None, code="x = 1\n\ny = 2"),
        Paragraph([Text("para\nstill para")]),
    ]


def test_html_block_is_raw():
    blocks = markdown_parser.parse('<div class="note">\n*kept*\n</div>\n\nafter')
    assert blocks == [Raw('<div class="note">\n*kept*\n</div>'), Paragraph([Text("after")])]


def test_link_reference_definitions():
    md_text = textwrap.dedent(
        """
        [one]: http://one.example "One"
        [two]: <http://two.example>
        [three]:
          http://three.example
          'Three'
        """
    )
    blocks = markdown_parser.parse(md_text)
    assert blocks == [
        LinkReference("one", "http://one.example", "One"),
        LinkReference("two", "http://two.example", None),
        LinkReference("three", "http://three.example", "Three"),
    ]


def test_ordered_list_styles():
    assert markdown_parser.parse("a. one\nb. two") == [
        OrderedList([SimpleItem([Text("one")]), SimpleItem([Text("two")])], OrderedListType.LOWERCASE)
    ]
    assert markdown_parser.parse("I. one\nII. two")[0].list_type == OrderedListType.UPPERCASE_ROMAN
    assert markdown_parser.parse("i. one")[0].list_type == OrderedListType.LOWERCASE_ROMAN
    assert markdown_parser.parse("A. one")[0].list_type == OrderedListType.UPPERCASE
    assert markdown_parser.parse("3. one\n4. two")[0].list_type == OrderedListType.NUMERIC


def test_blank_line_between_items_makes_list_loose():
    blocks = markdown_parser.parse("1. first\n\n2. second\n3. third")
    assert blocks == [
        OrderedList(
            [
                ParagraphItem([Paragraph([Text("first")])]),
                ParagraphItem([Paragraph([Text("second")])]),
                ParagraphItem([Paragraph([Text("third")])]),
            ],
            OrderedListType.NUMERIC,
        )
    ]


def test_nested_and_continued_list_items():
    md_text = textwrap.dedent(
        """
        - a
          continued
        - b
          - nested
        - c
        """
    )
    blocks = markdown_parser.parse(md_text)
    assert blocks == [
        UnorderedList(
            [
                SimpleItem([Text("a\ncontinued")]),
                ParagraphItem(
                    [
                        Paragraph([Text("b")]),
                        UnorderedList([SimpleItem([Text("nested")])]),
                    ]
                ),
                SimpleItem([Text("c")]),
            ]
        )
    ]


def test_item_with_two_paragraphs():
    blocks = markdown_parser.parse("- one\n\n  two\n- three")
    assert blocks == [
        UnorderedList(
            [
                ParagraphItem([Paragraph([Text("one")]), Paragraph([Text("two")])]),
                SimpleItem([Text("three")]),
            ]
        )
    ]


def test_under_indented_line_after_blank_leaves_list():
    blocks = markdown_parser.parse("- a\n\n text")
    assert blocks == [UnorderedList([SimpleItem([Text("a")])]), Paragraph([Text("text")])]


def test_marker_family_change_starts_new_list():
    blocks = markdown_parser.parse("- a\n1. b")
    assert blocks == [
        UnorderedList([SimpleItem([Text("a")])]),
        OrderedList([SimpleItem([Text("b")])], OrderedListType.NUMERIC),
    ]


def test_references_resolve_after_parsing():
    md_text = "See [docs][D] and [missing][x].\n\n[d]: http://docs.example"
    blocks = markdown_parser.parse(md_text)
    assert blocks == [
        Paragraph(
            [
                Text("See "),
                Link([Text("docs")], "http://docs.example", None),
                Text(" and "),
                Text("[missing][x]"),
                Text("."),
            ]
        ),
        LinkReference("d", "http://docs.example", None),
    ]


def test_references_inside_nested_blocks():
    md_text = "> - [quoted]\n\n[Quoted]: /q 'Q'"
    blocks = markdown_parser.parse(md_text)
    assert blocks[0] == Blockquote([UnorderedList([SimpleItem([Link([Text("quoted")], "/q", "Q")])])])


def test_parse_blocks_keeps_reference_links():
    blocks = markdown_parser.parse_blocks("[a][b]\n\n[b]: /x")
    assert blocks[0] == Paragraph([RefLink([Text("a")], "b", "[a][b]")])


def test_parse_document_exposes_reference_table():
    document = markdown_parser.parse_document("[x]: /one\n[X]: /two\n\n[x]")
    assert len(document.references) == 1
    assert document.references.get("X").url == "/one"
    assert document.blocks[-1] == Paragraph([Link([Text("x")], "/one", None)])


def test_resolution_can_be_disabled():
    config = ParserConfig(resolve_references=False)
    blocks = markdown_parser.parse("[a][b]\n\n[b]: /x", config=config)
    assert isinstance(blocks[0].spans[0], RefLink)


def test_deep_blockquotes_degrade_to_raw():
    blocks = markdown_parser.parse(">" * 200 + " deep")
    node = blocks[0]
    levels = 0
    while isinstance(node, Blockquote):
        levels += 1
        node = node.blocks[0]
    assert levels == 33
    assert isinstance(node, Raw)
    assert node.text.endswith("deep")


def test_parsing_is_deterministic():
    md_text = "# T\n\n- [a](b)\n- *c*\n\n> q\n\n[r]: /r\n"
    assert markdown_parser.parse(md_text) == markdown_parser.parse(md_text)


def test_malformed_input_never_fails():
    samples = [
        "",
        "\n\n",
        "*",
        "**",
        "`",
        "[",
        "![",
        "> ",
        "- ",
        "1.",
        "#",
        "```",
        "[a]:",
        "\\",
        "_",
        "***a***",
        "<div>",
        "[" * 500 + "]" * 500,
        "*a " * 200,
        "- " * 50 + "x",
    ]
    for sample in samples:
        assert isinstance(markdown_parser.parse(sample), list)


def test_lone_letter_and_period_is_prose():
    assert markdown_parser.parse("a.\nb") == [Paragraph([Text("a.\nb")])]
    assert markdown_parser.parse("I.") == [Paragraph([Text("I.")])]
    assert markdown_parser.parse("1.\n2. two")[0] == OrderedList(
        [SimpleItem([]), SimpleItem([Text("two")])], OrderedListType.NUMERIC
    )


def test_document_is_frozen():
    document = markdown_parser.parse_document("text")
    with pytest.raises(dataclasses.FrozenInstanceError):
        document.blocks = []
