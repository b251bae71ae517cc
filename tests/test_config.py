import logging
import textwrap

import pytest

from MarkTree.config import DEFAULT_CONFIG, ParserConfig, load_config, load_config_file


def test_empty_config_uses_defaults():
    assert load_config("") == DEFAULT_CONFIG
    assert DEFAULT_CONFIG == ParserConfig(max_depth=32, resolve_references=True, tab_size=4)


def test_load_config_values():
    config = load_config(
        textwrap.dedent(
            """
            max_depth: 8
            resolve_references: false
            """
        )
    )
    assert config == ParserConfig(max_depth=8, resolve_references=False, tab_size=4)


def test_unknown_keys_are_ignored(caplog):
    with caplog.at_level(logging.WARNING, logger="MarkTree.config"):
        config = load_config("tab_size: 2\ncolour: blue\n")
    assert config.tab_size == 2
    assert "colour" in caplog.text


@pytest.mark.parametrize(
    "text",
    [
        "- max_depth\n- 3\n",
        "max_depth: -1\n",
        "max_depth: deep\n",
        "tab_size: 0\n",
        "resolve_references: maybe\n",
    ],
)
def test_invalid_config_raises(text):
    with pytest.raises(ValueError):
        load_config(text)


def test_load_config_file(tmp_path):
    path = tmp_path / "marktree.yaml"
    path.write_text("max_depth: 4\n", encoding="utf-8")
    assert load_config_file(path).max_depth == 4
