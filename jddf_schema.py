#!/usr/bin/env python3
# jddf_schema.py · v0.1.0
"""
Compile JDDF (JSON Data Definition Format) schemas into an immutable form tree.

Every schema node carries exactly one *form*:

* Empty          – ``{}``
* Ref            – ``{"ref": "name"}`` (resolved against root ``definitions``)
* TypeForm       – ``{"type": "uint8"}``
* Enum           – ``{"enum": ["a", "b"]}``
* Elements       – ``{"elements": {...}}``
* Properties     – ``{"properties": {...}, "optionalProperties": {...},
                     "additionalProperties": true}``
* Values         – ``{"values": {...}}``
* Discriminator  – ``{"discriminator": {"tag": "kind", "mapping": {...}}}``

Usage
-----
python jddf_schema.py schema.json      # compile and report the root form
"""
from __future__ import annotations

import argparse
import enum
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, Union

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


class SchemaError(ValueError):
    """The schema text does not describe a well-formed JDDF schema."""


# ──────────────────────────────────────────────────────────────
# Forms
# ──────────────────────────────────────────────────────────────

class Type(enum.Enum):
    BOOLEAN = "boolean"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Ref:
    name: str


@dataclass(frozen=True)
class TypeForm:
    type: Type


@dataclass(frozen=True)
class Enum:
    values: FrozenSet[str]


@dataclass(frozen=True)
class Elements:
    schema: "Schema"


@dataclass(frozen=True)
class Properties:
    required: Mapping[str, "Schema"]
    optional: Mapping[str, "Schema"]
    allow_additional: bool = False


@dataclass(frozen=True)
class Values:
    schema: "Schema"


@dataclass(frozen=True)
class Discriminator:
    tag: str
    mapping: Mapping[str, "Schema"]


Form = Union[Empty, Ref, TypeForm, Enum, Elements, Properties, Values, Discriminator]
FORMS = (Empty, Ref, TypeForm, Enum, Elements, Properties, Values, Discriminator)


@dataclass(frozen=True)
class Schema:
    form: Form
    # shared by every node of one tree; only the root's own copy is authoritative
    definitions: Mapping[str, "Schema"] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    def resolve(self, name: str) -> "Schema":
        try:
            return self.definitions[name]
        except KeyError:
            raise SchemaError(f"ref to undefined definition: {name!r}") from None


# ──────────────────────────────────────────────────────────────
# Compiler
# ──────────────────────────────────────────────────────────────

KEYWORDS = frozenset({
    "definitions", "ref", "type", "enum", "elements", "properties",
    "optionalProperties", "additionalProperties", "values", "discriminator",
})

_FORM_KEYWORDS = {
    "ref": ("ref",),
    "type": ("type",),
    "enum": ("enum",),
    "elements": ("elements",),
    "properties": ("properties", "optionalProperties", "additionalProperties"),
    "values": ("values",),
    "discriminator": ("discriminator",),
}


class _Compiler:
    def __init__(self, definitions: Dict[str, Schema]) -> None:
        # filled in after the definitions themselves are compiled
        self.definitions = definitions
        self.view: Mapping[str, Schema] = MappingProxyType(definitions)
        self.pending_refs: list = []

    def node(self, data: Any, path: str, root: bool = False) -> Schema:
        if not isinstance(data, dict):
            raise SchemaError(f"{path or '/'}: schema must be an object")
        unknown = set(data) - KEYWORDS
        if unknown:
            raise SchemaError(f"{path or '/'}: unknown keyword(s) {sorted(unknown)}")
        if "definitions" in data and not root:
            raise SchemaError(f"{path}: definitions are only allowed at the root")

        groups = [g for g, kws in _FORM_KEYWORDS.items() if any(k in data for k in kws)]
        if len(groups) > 1:
            raise SchemaError(f"{path or '/'}: conflicting forms {groups}")
        if not groups:
            return Schema(Empty(), self.view)
        return Schema(getattr(self, f"_{groups[0]}")(data, path), self.view)

    def _ref(self, data: Dict[str, Any], path: str) -> Ref:
        name = data["ref"]
        if not isinstance(name, str):
            raise SchemaError(f"{path}/ref: must be a string")
        self.pending_refs.append((name, f"{path}/ref"))
        return Ref(name)

    def _type(self, data: Dict[str, Any], path: str) -> TypeForm:
        try:
            return TypeForm(Type(data["type"]))
        except (ValueError, TypeError):
            raise SchemaError(f"{path}/type: unknown type {data['type']!r}") from None

    def _enum(self, data: Dict[str, Any], path: str) -> Enum:
        vals = data["enum"]
        if not isinstance(vals, list) or not vals:
            raise SchemaError(f"{path}/enum: must be a non-empty array")
        if not all(isinstance(v, str) for v in vals):
            raise SchemaError(f"{path}/enum: members must be strings")
        if len(set(vals)) != len(vals):
            raise SchemaError(f"{path}/enum: members must be unique")
        return Enum(frozenset(vals))

    def _elements(self, data: Dict[str, Any], path: str) -> Elements:
        return Elements(self.node(data["elements"], f"{path}/elements"))

    def _values(self, data: Dict[str, Any], path: str) -> Values:
        return Values(self.node(data["values"], f"{path}/values"))

    def _members(self, data: Dict[str, Any], key: str, path: str) -> Mapping[str, Schema]:
        raw = data.get(key, {})
        if not isinstance(raw, dict):
            raise SchemaError(f"{path}/{key}: must be an object")
        return MappingProxyType(
            {name: self.node(sub, f"{path}/{key}/{name}") for name, sub in raw.items()}
        )

    def _properties(self, data: Dict[str, Any], path: str) -> Properties:
        required = self._members(data, "properties", path)
        optional = self._members(data, "optionalProperties", path)
        shared = set(required) & set(optional)
        if shared:
            raise SchemaError(
                f"{path or '/'}: properties and optionalProperties share {sorted(shared)}"
            )
        additional = data.get("additionalProperties", False)
        if not isinstance(additional, bool):
            raise SchemaError(f"{path}/additionalProperties: must be a boolean")
        return Properties(required, optional, additional)

    def _discriminator(self, data: Dict[str, Any], path: str) -> Discriminator:
        disc = data["discriminator"]
        path = f"{path}/discriminator"
        if not isinstance(disc, dict) or set(disc) != {"tag", "mapping"}:
            raise SchemaError(f"{path}: must be an object with tag and mapping")
        tag, mapping = disc["tag"], disc["mapping"]
        if not isinstance(tag, str):
            raise SchemaError(f"{path}/tag: must be a string")
        if not isinstance(mapping, dict) or not mapping:
            raise SchemaError(f"{path}/mapping: must be a non-empty object")
        compiled: Dict[str, Schema] = {}
        for value, sub in mapping.items():
            sub_path = f"{path}/mapping/{value}"
            schema = self.node(sub, sub_path)
            form = schema.form
            if not isinstance(form, Properties):
                raise SchemaError(f"{sub_path}: mapping schemas must be of properties form")
            if tag in form.required or tag in form.optional:
                raise SchemaError(f"{sub_path}: redeclares discriminator tag {tag!r}")
            compiled[value] = schema
        return Discriminator(tag, MappingProxyType(compiled))


def compile_schema(data: Any) -> Schema:
    """Compile decoded schema JSON into a :class:`Schema` tree.

    Raises :class:`SchemaError` naming the JSON-pointer path of the first
    problem found.
    """
    definitions: Dict[str, Schema] = {}
    compiler = _Compiler(definitions)

    if isinstance(data, dict) and "definitions" in data:
        raw_defs = data["definitions"]
        if not isinstance(raw_defs, dict):
            raise SchemaError("/definitions: must be an object")
        for name, sub in raw_defs.items():
            definitions[name] = compiler.node(sub, f"/definitions/{name}")

    root = compiler.node(data, "", root=True)
    for name, path in compiler.pending_refs:
        if name not in definitions:
            raise SchemaError(f"{path}: no definition named {name!r}")
    return root


def load_schema(source: Union[str, Path]) -> Schema:
    """Read schema JSON from *source* (``"-"`` for stdin) and compile it."""
    if str(source) == "-":
        text = sys.stdin.read()
        where = "<stdin>"
    else:
        text = Path(source).read_text(encoding="utf-8")
        where = str(source)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"{where}: invalid JSON: {exc}") from exc
    schema = compile_schema(data)
    logger.debug("compiled schema from %s: root form %s", where, type(schema.form).__name__)
    return schema


def _cli() -> None:
    p = argparse.ArgumentParser(description="Check that a file holds a valid JDDF schema.")
    p.add_argument("input", nargs="?", default="-", help="Schema path, or - for stdin")
    args = p.parse_args()

    try:
        schema = load_schema(args.input)
    except (SchemaError, OSError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        sys.exit(1)
    print(f"✔ Valid JDDF schema ({type(schema.form).__name__} form)")


if __name__ == "__main__":
    _cli()
