#!/usr/bin/env python3
# jddf_gen.py · v0.1.0
"""
Generate random JSON documents that satisfy a JDDF schema.

Major features
--------------
* One generator per schema form, looked up through a registry
* Deterministic output with --seed
* Unbounded output with -n 0 (the default), stopped cleanly by Ctrl-C
* One JSON document per line, to stdout or --out

Usage
-----
python jddf_gen.py schema.json -n 10
cat schema.json | python jddf_gen.py -n 100 --seed 42 --out samples.jsonl
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, TextIO

from jddf_random import RandomSource
from jddf_schema import (
    FORMS,
    Discriminator,
    Elements,
    Empty,
    Enum,
    Properties,
    Ref,
    Schema,
    Type,
    TypeForm,
    Values,
    load_schema,
)

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

MAX_LEN = 7
DEFAULT_MAX_DEPTH = 32
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class UnsupportedFormError(RuntimeError):
    """The generator was handed a schema form it has no generator for."""


class GenerationDepthError(RuntimeError):
    """The schema admits no finite value within the recursion limit."""


# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FuzzConfig:
    count: int = 0                    # 0 means unbounded
    seed: Optional[int] = None
    source: str = "-"                 # schema path, or - for stdin
    max_depth: int = DEFAULT_MAX_DEPTH
    out: Optional[Path] = None


class Context:
    def __init__(self, rng: RandomSource, max_depth: int = DEFAULT_MAX_DEPTH,
                 ref_limit: Optional[int] = None) -> None:
        self.rng = rng
        self.max_depth = max_depth
        # ref expansions allowed on one path; plain nesting never counts
        self.ref_limit = 2 * max_depth if ref_limit is None else ref_limit
        self.refs = 0

    def size(self, depth: int) -> int:
        """Member count for arrays and maps; zero once past the soft depth limit."""
        if depth > self.max_depth:
            return 0
        return self.rng.integer(0, MAX_LEN)

    def maybe(self, depth: int) -> bool:
        return depth <= self.max_depth and self.rng.boolean()


# ──────────────────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────────────────

GeneratorFn = Callable[[Context, Schema, int], Any]
_REGISTRY: Dict[type, GeneratorFn] = {}

def register(form: type) -> Callable[[GeneratorFn], GeneratorFn]:
    def inner(fn: GeneratorFn) -> GeneratorFn:
        if form in _REGISTRY:
            raise ValueError(f"Duplicate generator: {form.__name__}")
        _REGISTRY[form] = fn
        return fn
    return inner


def generate(schema: Schema, rng: RandomSource, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Any:
    """Produce one JSON value (plain Python objects) conforming to *schema*."""
    if max_depth < 1:
        raise ValueError(f"max_depth must be >= 1, got {max_depth}")
    # an acyclic chain of refs never expands more than once per definition
    ctx = Context(rng, max_depth, 2 * max_depth + len(schema.definitions))
    return _gen(ctx, schema, 0)


def _gen(ctx: Context, schema: Schema, depth: int) -> Any:
    fn = _REGISTRY.get(type(schema.form))
    if fn is None:
        raise UnsupportedFormError(f"no generator for form {schema.form!r}")
    return fn(ctx, schema, depth)


# ──────────────────────────────────────────────────────────────
# Primitive samplers
# ──────────────────────────────────────────────────────────────

def sample_timestamp(rng: RandomSource) -> str:
    seconds = rng.int_of_width(32, signed=True)
    return (EPOCH + timedelta(seconds=seconds)).isoformat()


_SAMPLERS: Dict[Type, Callable[[RandomSource], Any]] = {
    Type.BOOLEAN:   lambda rng: rng.boolean(),
    Type.INT8:      lambda rng: rng.int_of_width(8, signed=True),
    Type.UINT8:     lambda rng: rng.int_of_width(8, signed=False),
    Type.INT16:     lambda rng: rng.int_of_width(16, signed=True),
    Type.UINT16:    lambda rng: rng.int_of_width(16, signed=False),
    Type.INT32:     lambda rng: rng.int_of_width(32, signed=True),
    Type.UINT32:    lambda rng: rng.int_of_width(32, signed=False),
    Type.FLOAT32:   lambda rng: rng.float32(),
    Type.FLOAT64:   lambda rng: rng.float64(),
    Type.STRING:    lambda rng: rng.short_string(MAX_LEN),
    Type.TIMESTAMP: sample_timestamp,
}

# the "any value" repertoire: null, bool, uint8, float64, short string
_ANY_SHAPES = (
    lambda rng: None,
    _SAMPLERS[Type.BOOLEAN],
    _SAMPLERS[Type.UINT8],
    _SAMPLERS[Type.FLOAT64],
    _SAMPLERS[Type.STRING],
)

def sample_any(rng: RandomSource) -> Any:
    return rng.choice(_ANY_SHAPES)(rng)


# ──────────────────────────────────────────────────────────────
# Generators
# ──────────────────────────────────────────────────────────────

@register(Empty)
def gen_empty(ctx: Context, schema: Schema, depth: int) -> Any:
    return sample_any(ctx.rng)

@register(TypeForm)
def gen_type(ctx: Context, schema: Schema, depth: int) -> Any:
    return _SAMPLERS[schema.form.type](ctx.rng)

@register(Enum)
def gen_enum(ctx: Context, schema: Schema, depth: int) -> str:
    # sorted so a seed reproduces the same pick regardless of string hashing
    return ctx.rng.choice(sorted(schema.form.values))

@register(Ref)
def gen_ref(ctx: Context, schema: Schema, depth: int) -> Any:
    if ctx.refs >= ctx.ref_limit:
        raise GenerationDepthError(
            f"ref {schema.form.name!r} expanded {ctx.refs} times on one path; "
            "schema has no finite value within the limit"
        )
    ctx.refs += 1
    try:
        return _gen(ctx, schema.resolve(schema.form.name), depth + 1)
    finally:
        ctx.refs -= 1

@register(Elements)
def gen_elements(ctx: Context, schema: Schema, depth: int) -> list:
    sub = schema.form.schema
    return [_gen(ctx, sub, depth + 1) for _ in range(ctx.size(depth))]

@register(Properties)
def gen_properties(ctx: Context, schema: Schema, depth: int) -> dict:
    form: Properties = schema.form
    obj: Dict[str, Any] = {}
    # member order is unspecified; shuffle rather than leak the schema's key order
    for key in ctx.rng.shuffled(form.required):
        obj[key] = _gen(ctx, form.required[key], depth + 1)
    for key in ctx.rng.shuffled(form.optional):
        if ctx.maybe(depth):
            obj[key] = _gen(ctx, form.optional[key], depth + 1)
    if form.allow_additional:
        for _ in range(ctx.size(depth)):
            key = ctx.rng.short_string(MAX_LEN)
            obj[key] = sample_any(ctx.rng)
    return obj

@register(Values)
def gen_values(ctx: Context, schema: Schema, depth: int) -> dict:
    sub = schema.form.schema
    obj: Dict[str, Any] = {}
    for _ in range(ctx.size(depth)):
        key = ctx.rng.short_string(MAX_LEN)
        obj[key] = _gen(ctx, sub, depth + 1)
    return obj

@register(Discriminator)
def gen_discriminator(ctx: Context, schema: Schema, depth: int) -> dict:
    form: Discriminator = schema.form
    tag_value, sub = ctx.rng.choice(form.mapping)
    obj = _gen(ctx, sub, depth + 1)
    obj[form.tag] = tag_value
    return obj


def _check_exhaustive(registry: Dict[type, Any], forms: tuple, samplers: Dict[Type, Any]) -> None:
    missing = [f.__name__ for f in forms if f not in registry]
    missing += [f"TypeForm({t.value})" for t in Type if t not in samplers]
    if missing:
        raise RuntimeError(f"No generator registered for: {', '.join(missing)}")

_check_exhaustive(_REGISTRY, FORMS, _SAMPLERS)


# ──────────────────────────────────────────────────────────────
# Driver
# ──────────────────────────────────────────────────────────────

def fuzz_values(
    schema: Schema,
    rng: RandomSource,
    count: int = 0,
    *,
    cancel: Optional[threading.Event] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Iterator[Any]:
    """Yield *count* independent values, or values without end when count is 0.

    *cancel* is checked before each value; once set, iteration stops.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    produced = 0
    while count == 0 or produced < count:
        if cancel is not None and cancel.is_set():
            logger.warning("generation cancelled after %d value(s)", produced)
            return
        yield generate(schema, rng, max_depth=max_depth)
        produced += 1


def run(
    cfg: FuzzConfig,
    cancel: Optional[threading.Event] = None,
    stdout: Optional[TextIO] = None,
    schema: Optional[Schema] = None,
) -> int:
    """Write values for *schema* (loaded from ``cfg.source`` if not given), one JSON text per line.

    Returns the number of values written. A reader closing the pipe
    (``| head``) ends the output early; it is not an error.
    """
    if schema is None:
        schema = load_schema(cfg.source)
    rng = RandomSource(cfg.seed)

    if cfg.out:
        cfg.out.parent.mkdir(parents=True, exist_ok=True)
        sink: TextIO = cfg.out.open("w", encoding="utf-8")
    else:
        sink = stdout or sys.stdout

    written = 0
    try:
        for value in fuzz_values(schema, rng, cfg.count, cancel=cancel, max_depth=cfg.max_depth):
            sink.write(json.dumps(value) + "\n")
            sink.flush()
            written += 1
            if written % 10_000 == 0:
                logger.debug("wrote %d values", written)
    except BrokenPipeError:
        logger.debug("output closed by reader after %d value(s)", written)
        if sink is sys.__stdout__:
            # keep interpreter shutdown from flushing into the closed pipe again
            os.dup2(os.open(os.devnull, os.O_WRONLY), sink.fileno())
    finally:
        if cfg.out:
            sink.close()
    return written


def _non_negative(text: str) -> int:
    n = int(text)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def _cli() -> None:
    p = argparse.ArgumentParser(
        prog="jddf-fuzz",
        description="Create random JSON documents satisfying a JDDF schema.",
    )
    p.add_argument("input", nargs="?", default="-", metavar="INPUT",
                   help="Where to read the schema from; - (the default) means stdin")
    p.add_argument("-n", "--num-values", type=_non_negative, default=0,
                   help="How many values to generate; 0 (the default) means no limit")
    p.add_argument("--seed", type=int, help="Random seed for deterministic output")
    p.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH,
                   help="Nesting depth after which recursive schemas shrink")
    p.add_argument("--out", type=Path, help="Path to save generated values")
    p.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    cfg = FuzzConfig(
        count=args.num_values,
        seed=args.seed,
        source=args.input,
        max_depth=args.max_depth,
        out=args.out,
    )

    # handlers go in only once the schema is read, so Ctrl-C still interrupts a blocked stdin
    try:
        schema = load_schema(cfg.source)
    except (ValueError, OSError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    cancel = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda signum, frame: cancel.set())

    try:
        written = run(cfg, cancel=cancel, schema=schema)
    except (ValueError, OSError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        sys.exit(1)
    except (UnsupportedFormError, GenerationDepthError):
        logger.exception("generation aborted")
        sys.exit(2)

    if cfg.out:
        print(f"✔ Saved {written} value(s) to {cfg.out}")


if __name__ == "__main__":
    _cli()
