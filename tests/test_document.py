"""
Tests for the registry document parser.
"""

import pytest

from boxpm.core.services.registry.document import (
    DocumentError,
    decode_document,
    parse_document,
)


class TestParseDocument:
    def test_flat_object(self):
        doc = parse_document('{"name": "base64", "latest": "1.0.1"}')
        assert doc == {"name": "base64", "latest": "1.0.1"}

    def test_empty_object(self):
        assert parse_document("  {}  ") == {}

    def test_preserves_key_order(self):
        doc = parse_document('{"b": "1", "a": "2", "c": "3"}')
        assert list(doc) == ["b", "a", "c"]

    def test_nested_versions_are_scoped(self):
        text = """
        {
          "versions": {
            "1.0.0": {"entry-linux": "A", "git": {"url": "https://git/a", "ref": "v1"}},
            "1.0.1": {"entry-linux": "B"},
            "1.0.2": {"git": {"url": "https://git/c"}, "entry-linux": "C"}
          }
        }
        """
        versions = parse_document(text)["versions"]
        assert list(versions) == ["1.0.0", "1.0.1", "1.0.2"]
        assert versions["1.0.0"]["git"] == {"url": "https://git/a", "ref": "v1"}
        assert "git" not in versions["1.0.1"]
        assert versions["1.0.1"]["entry-linux"] == "B"
        assert versions["1.0.2"]["git"] == {"url": "https://git/c"}
        assert versions["1.0.2"]["entry-linux"] == "C"

    def test_scalars(self):
        doc = parse_document('{"n": 3, "f": 1.5, "t": true, "x": false, "z": null, "neg": -2}')
        assert doc == {"n": 3, "f": 1.5, "t": True, "x": False, "z": None, "neg": -2}

    def test_array_of_scalars(self):
        assert parse_document('{"keywords": ["a", "b", 1]}') == {"keywords": ["a", "b", 1]}

    def test_escapes(self):
        doc = parse_document(r'{"d": "say \"hi\" \\ \/ \n é"}')
        assert doc["d"] == 'say "hi" \\ / \n é'

    def test_brace_inside_string_does_not_close_object(self):
        doc = parse_document('{"a": {"d": "}{"}, "b": "after"}')
        assert doc == {"a": {"d": "}{"}, "b": "after"}

    def test_decode_strips_bom(self):
        assert decode_document(b'\xef\xbb\xbf{"a": "b"}') == {"a": "b"}


class TestParseErrors:
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "[]",
            '{"a": }',
            '{"a": "b"',
            '{"a" "b"}',
            '{a: "b"}',
            '{"a": "b",}',
            '{"a": "unterminated}',
            '{"a": "b"} trailing',
            '{"a": "\\q"}',
            '{"a": "\\u12"}',
            '{"a": 1.2.3}',
        ],
    )
    def test_rejects_malformed(self, text):
        with pytest.raises(DocumentError):
            parse_document(text)

    def test_rejects_objects_in_arrays(self):
        with pytest.raises(DocumentError, match="scalars"):
            parse_document('{"a": [{"b": "c"}]}')

    def test_error_carries_offset(self):
        with pytest.raises(DocumentError) as exc:
            parse_document('{"a": "b" "c"}')
        assert exc.value.position == 10

    def test_rejects_deep_nesting(self):
        text = '{"a": ' * 20 + '"x"' + "}" * 20
        with pytest.raises(DocumentError, match="deeply"):
            parse_document(text)

    def test_rejects_invalid_utf8(self):
        with pytest.raises(DocumentError, match="UTF-8"):
            decode_document(b'{"a": "\xff"}')


class TestUnicodeEscapes:
    def test_basic_plane(self):
        assert parse_document(r'{"d": "caf\u00e9"}') == {"d": "caf\u00e9"}

    def test_surrogate_pair_combines(self):
        doc = parse_document(r'{"d": "fast \ud83d\ude80"}')
        assert doc["d"] == "fast \U0001F680"
        assert doc["d"].encode("utf-8") == b"fast \xf0\x9f\x9a\x80"

    @pytest.mark.parametrize(
        "text",
        [
            r'{"d": "\ud83d"}',
            r'{"d": "\ud83d x"}',
            r'{"d": "\ud83dA"}',
            r'{"d": "\ude80"}',
            r'{"d": "\u+123"}',
        ],
    )
    def test_rejects_unpaired_surrogates_and_bad_hex(self, text):
        with pytest.raises(DocumentError):
            parse_document(text)
