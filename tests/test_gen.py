# tests/test_gen.py
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

import pytest

from jddf_gen import (
    GenerationDepthError,
    UnsupportedFormError,
    generate,
)
from jddf_random import RandomSource
from jddf_schema import Discriminator, Properties, Schema, Type, TypeForm, compile_schema
from jddf_validate import validate

TRIALS = 1000


def sample(data, rng, n=TRIALS, **kwargs):
    schema = compile_schema(data)
    return [generate(schema, rng, **kwargs) for _ in range(n)]


def test_boolean(rng):
    values = sample({"type": "boolean"}, rng)
    assert all(isinstance(v, bool) for v in values)
    assert set(values) == {True, False}


@pytest.mark.parametrize("name,lo,hi", [
    ("int8", -128, 127),
    ("uint8", 0, 255),
    ("int16", -32768, 32767),
    ("uint16", 0, 65535),
    ("int32", -(2 ** 31), 2 ** 31 - 1),
    ("uint32", 0, 2 ** 32 - 1),
])
def test_integer_widths(rng, name, lo, hi):
    for v in sample({"type": name}, rng):
        assert isinstance(v, int) and not isinstance(v, bool)
        assert lo <= v <= hi


def test_floats_are_floats(rng):
    for name in ("float32", "float64"):
        assert all(isinstance(v, float) for v in sample({"type": name}, rng))


def test_string(rng):
    values = sample({"type": "string"}, rng)
    assert {len(v) for v in values} == set(range(8))
    assert all(32 <= ord(c) <= 126 for v in values for c in v)


def test_timestamp_round_trips_as_rfc3339(rng):
    for v in sample({"type": "timestamp"}, rng, n=200):
        parsed = datetime.fromisoformat(v)
        assert parsed.utcoffset() == timezone.utc.utcoffset(None)
        assert 1901 <= parsed.year <= 2038
        assert v[10] == "T" and v.endswith("+00:00")


def test_enum(rng):
    values = sample({"enum": ["a", "b", "c"]}, rng)
    assert set(values) == {"a", "b", "c"}


def test_elements(rng):
    values = sample({"elements": {"type": "boolean"}}, rng)
    for v in values:
        assert isinstance(v, list) and 0 <= len(v) <= 7
        assert all(isinstance(x, bool) for x in v)
    assert {len(v) for v in values} == set(range(8))


def test_properties_closed(rng):
    values = sample({
        "properties": {"x": {"type": "boolean"}},
        "optionalProperties": {"y": {"type": "boolean"}},
    }, rng)
    for v in values:
        assert isinstance(v["x"], bool)
        assert set(v) <= {"x", "y"}
    with_y = sum("y" in v for v in values)
    assert 400 <= with_y <= 600


def test_properties_open(rng):
    values = sample({
        "properties": {"x": {"type": "boolean"}},
        "optionalProperties": {"y": {"type": "boolean"}},
        "additionalProperties": True,
    }, rng)
    extra = [k for v in values for k in v if k not in ("x", "y")]
    assert extra
    assert all(0 <= len(k) <= 7 for k in extra)
    assert all("x" in v for v in values)


def test_values(rng):
    for v in sample({"values": {"type": "uint8"}}, rng):
        assert isinstance(v, dict) and len(v) <= 7
        assert all(0 <= len(k) <= 7 for k in v)
        assert all(0 <= x <= 255 for x in v.values())


def test_empty_repertoire(rng):
    values = sample({}, rng, n=2000)
    kinds = {type(v) for v in values}
    assert kinds == {type(None), bool, int, float, str}
    assert all(0 <= v <= 255 for v in values if type(v) is int)


def test_discriminator_sets_tag(rng):
    data = {"discriminator": {"tag": "kind", "mapping": {"A": {"properties": {}}}}}
    for v in sample(data, rng):
        assert v == {"kind": "A"}


def test_discriminator_tag_overwrites_existing_member(rng):
    # built by hand: the compiler would reject a mapping that declares the tag
    inner = Schema(Properties(MappingProxyType({"kind": Schema(TypeForm(Type.BOOLEAN))}),
                              MappingProxyType({})))
    schema = Schema(Discriminator("kind", MappingProxyType({"A": inner})))
    for _ in range(100):
        assert generate(schema, rng)["kind"] == "A"


def test_discriminator_picks_every_mapping(rng):
    data = {"discriminator": {"tag": "t", "mapping": {
        "a": {"properties": {"n": {"type": "uint8"}}},
        "b": {"properties": {"s": {"type": "string"}}},
    }}}
    values = sample(data, rng, n=200)
    assert {v["t"] for v in values} == {"a", "b"}
    assert all(set(v) == ({"t", "n"} if v["t"] == "a" else {"t", "s"}) for v in values)


def test_recursive_ref_terminates(rng):
    data = {
        "definitions": {
            "node": {
                "properties": {"value": {"type": "uint8"}},
                "optionalProperties": {"children": {"elements": {"ref": "node"}}},
            }
        },
        "ref": "node",
    }
    for v in sample(data, rng, n=100, max_depth=12):
        assert validate(data, v) == []


def test_unproductive_recursion_raises(rng):
    schema = compile_schema({
        "definitions": {"loop": {"properties": {"next": {"ref": "loop"}}}},
        "ref": "loop",
    })
    with pytest.raises(GenerationDepthError):
        generate(schema, rng, max_depth=8)


def test_max_depth_must_be_positive(rng):
    with pytest.raises(ValueError):
        generate(compile_schema({}), rng, max_depth=0)


def test_unknown_form_is_fatal(rng):
    @dataclass(frozen=True)
    class Mystery:
        pass

    with pytest.raises(UnsupportedFormError):
        generate(Schema(Mystery()), rng)


def test_does_not_mutate_schema(rng):
    data = {"properties": {"a": {"elements": {"type": "string"}}}, "additionalProperties": True}
    schema = compile_schema(data)
    before = repr(schema)
    sample(data, rng, n=50)
    generate(schema, rng)
    assert repr(schema) == before


def test_same_seed_same_values():
    data = {
        "properties": {"e": {"enum": ["p", "q", "r"]}, "f": {"type": "float64"}},
        "optionalProperties": {"v": {"values": {}}},
        "additionalProperties": True,
    }
    first = sample(data, RandomSource(99), n=50)
    second = sample(data, RandomSource(99), n=50)
    assert json.dumps(first) == json.dumps(second)


CONFORMANCE_SCHEMAS = [
    {},
    {"type": "timestamp"},
    {"elements": {"values": {"type": "int16"}}},
    {
        "properties": {
            "id": {"type": "uint32"},
            "tags": {"elements": {"enum": ["red", "green"]}},
            "created": {"type": "timestamp"},
        },
        "optionalProperties": {"score": {"type": "float32"}, "note": {}},
    },
    {
        "discriminator": {
            "tag": "event",
            "mapping": {
                "click": {"properties": {"x": {"type": "int32"}, "y": {"type": "int32"}}},
                "key": {
                    "properties": {"code": {"type": "uint8"}},
                    "optionalProperties": {"mods": {"elements": {"type": "string"}}},
                    "additionalProperties": True,
                },
            },
        }
    },
    {
        "definitions": {"coords": {"elements": {"type": "float64"}}},
        "values": {"properties": {"at": {"ref": "coords"}, "ok": {"type": "boolean"}}},
    },
]


@pytest.mark.parametrize("data", CONFORMANCE_SCHEMAS)
def test_generated_values_conform(rng, data):
    for v in sample(data, rng, n=300):
        assert validate(data, v) == []
        # serializable as one line of JSON text
        line = json.dumps(v)
        assert "\n" not in line
        assert type(json.loads(line)) is type(v)


def nested(depth, leaf):
    for _ in range(depth):
        leaf = {"properties": {"a": leaf}}
    return leaf


def test_deep_schema_without_refs_never_raises(rng):
    data = nested(70, {"type": "boolean"})
    value = generate(compile_schema(data), rng)
    for _ in range(70):
        value = value["a"]
    assert isinstance(value, bool)


def test_small_max_depth_still_total_without_refs(rng):
    data = nested(5, {"elements": {"type": "uint8"}})
    for v in sample(data, rng, n=50, max_depth=1):
        assert validate(data, v) == []


def test_acyclic_ref_chain_is_not_cut_short(rng):
    data = {
        "definitions": {"a": {"ref": "b"}, "b": {"ref": "c"}, "c": {"type": "int8"}},
        "ref": "a",
    }
    for v in sample(data, rng, n=20, max_depth=1):
        assert -128 <= v <= 127


class CollidingKeys(RandomSource):
    """Every generated key is "x"; uint8-style draws are recorded in order."""

    def __init__(self, seed):
        super().__init__(seed)
        self.draws = []

    def short_string(self, max_len=7):
        return "x"

    def int_of_width(self, bits, signed):
        value = super().int_of_width(bits, signed)
        self.draws.append(value)
        return value


def test_additional_member_overwrites_required_key():
    rng = CollidingKeys(11)
    values = sample({
        "properties": {"x": {"type": "boolean"}},
        "additionalProperties": True,
    }, rng, n=300)
    assert all(set(v) == {"x"} for v in values)
    # an Empty-repertoire value (null, uint8, float, "x") replaced the required boolean
    assert any(not isinstance(v["x"], bool) for v in values)


def test_values_duplicate_keys_keep_last_write():
    rng = CollidingKeys(12)
    schema = compile_schema({"values": {"type": "uint8"}})
    sizes = set()
    for _ in range(200):
        rng.draws.clear()
        v = generate(schema, rng)
        assert v == ({"x": rng.draws[-1]} if rng.draws else {})
        sizes.add(len(rng.draws))
    assert max(sizes) > 1
