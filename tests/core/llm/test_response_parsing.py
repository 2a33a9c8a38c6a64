"""Tests for model output parsing helpers."""

import pytest

from chunkflow.core.errors import MalformedModelOutputError
from chunkflow.core.llm.response_parsing import parse_json_array, strip_code_fence


class TestStripCodeFence:
    """Tests for strip_code_fence()."""

    def test_json_fence(self):
        assert strip_code_fence('```json\n[{"a": 1}]\n```') == '[{"a": 1}]'

    def test_bare_fence(self):
        assert strip_code_fence("```\n[1, 2]\n```") == "[1, 2]"

    def test_fence_with_surrounding_prose(self):
        text = 'Here you go:\n```json\n{"ok": true}\n```\nAnything else?'
        assert strip_code_fence(text) == '{"ok": true}'

    def test_unfenced_text_is_stripped(self):
        assert strip_code_fence("  [1]\n") == "[1]"


class TestParseJsonArray:
    """Tests for parse_json_array()."""

    def test_fenced_array(self):
        assert parse_json_array('```json\n[{"id": "t1"}]\n```') == [{"id": "t1"}]

    def test_invalid_json(self):
        with pytest.raises(MalformedModelOutputError) as exc_info:
            parse_json_array("[1, 2")
        assert exc_info.value.raw == "[1, 2"

    def test_object_is_not_an_array(self):
        with pytest.raises(MalformedModelOutputError, match="Expected a JSON array"):
            parse_json_array('{"id": 1}')
