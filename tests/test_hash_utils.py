"""Tests for hash utilities and canonicalization rules."""

import pytest
from plox.kernel.hash_utils import (
    canonicalize_json,
    hash_signature,
    line_signature,
    CanonicalizationError,
)
from plox.kernel.spec import Line


class TestCanonicalizeJson:
    """Tests for canonicalize_json function."""

    def test_simple_dict_sorts_keys(self):
        """Object keys should be sorted."""
        obj = {"b": 2, "a": 1, "c": 3}
        assert canonicalize_json(obj) == '{"a":1,"b":2,"c":3}'

    def test_nested_dict_sorts_recursively(self):
        obj = {"z": {"b": 2, "a": 1}, "a": {"d": 4, "c": 3}}
        assert canonicalize_json(obj) == '{"a":{"c":3,"d":4},"z":{"a":1,"b":2}}'

    def test_array_preserves_order(self):
        assert canonicalize_json({"items": [3, 1, 2]}) == '{"items":[3,1,2]}'

    def test_string_normalization_nfc(self):
        """Composed and decomposed forms canonicalize identically."""
        assert canonicalize_json({"text": "café"}) == canonicalize_json({"text": "café"})

    def test_null_and_bool_allowed(self):
        assert canonicalize_json({"value": None, "flag": True}) == '{"flag":true,"value":null}'

    def test_float_banned_hard_error(self):
        with pytest.raises(CanonicalizationError, match="Floats are not allowed"):
            canonicalize_json({"value": 3.14})
        with pytest.raises(CanonicalizationError, match="Floats are not allowed"):
            canonicalize_json({"nested": [{"value": 1.0}]})

    def test_non_json_types_forbidden(self):
        with pytest.raises(CanonicalizationError, match="Non-JSON type"):
            canonicalize_json({"value": {1, 2}})

    def test_dict_keys_must_be_strings(self):
        with pytest.raises(CanonicalizationError, match="keys must be strings"):
            canonicalize_json({1: "a"})


class TestLineSignature:

    def test_styling_and_binding_excluded(self):
        plain = line_signature(Line.plot("duration"), "re", "%H")
        styled = line_signature(Line.plot("duration", title="t", line_color="red", file_id=2), "re", "%H")
        assert plain == styled
        assert plain == {"kind": "field_value", "guard": None, "regex": "re", "timestamp_format": "%H"}

    def test_event_value_is_encoded_as_string(self):
        signature = line_signature(Line.event("boot", 2), "boot", "%H")
        assert signature["yvalue"] == "2.0"
        # still hashable despite the float ban
        hash_signature(signature)


class TestHashSignature:

    def test_prefix_and_length(self):
        digest = hash_signature({"kind": "event_count", "regex": "x"})
        assert digest.startswith("sha256:")
        assert len(digest) == len("sha256:") + 64

    def test_deterministic_and_order_independent(self):
        a = hash_signature({"kind": "event_count", "regex": "x", "guard": None})
        b = hash_signature({"guard": None, "regex": "x", "kind": "event_count"})
        assert a == b

    def test_different_values_different_hash(self):
        assert hash_signature({"regex": "x"}) != hash_signature({"regex": "y"})
