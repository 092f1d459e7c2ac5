"""Environment predicates: decide whether a step applies to an environment.

Provides:
- Predicate: composable boolean expressions over an environment descriptor
- parse_predicate: build a predicate from an expression string
  (``runner.os == 'Linux' && arch != 'arm64'``)
- evaluates: the single entry point used by the matrix expander

A descriptor is a plain mapping, optionally nested. Fields are addressed by
dotted paths. A missing field makes any comparison false, so adding new
attributes to environments never changes how existing predicates evaluate.
String comparisons ignore case, as workflow expressions do.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple, Union

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_MISSING = object()


def _resolve_path(path: str, descriptor: Mapping[str, Any]) -> Any:
    """
    Resolve a dotted field path in a descriptor.

    Examples:
        "os"        -> descriptor["os"]
        "runner.os" -> descriptor["runner"]["os"]
    """
    current: Any = descriptor
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            logger.debug("Path %r not found in environment descriptor", path)
            return _MISSING
    return current


def _same(left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        return left.casefold() == right.casefold()
    return left == right


class Predicate:
    """Base class. Subclasses implement ``evaluate``."""

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return All((self, other))

    def __or__(self, other: "Predicate") -> "Predicate":
        return AnyOf((self, other))

    def __invert__(self) -> "Predicate":
        return Not(self)


@dataclass(frozen=True)
class Always(Predicate):
    value: bool = True

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        return self.value

    def __str__(self) -> str:
        return "true" if self.value else "false"


ALWAYS = Always()


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        actual = _resolve_path(self.field, descriptor)
        if actual is _MISSING:
            return False
        return _same(actual, self.value)

    def __str__(self) -> str:
        return f"{self.field} == {self.value!r}"


@dataclass(frozen=True)
class NotEq(Predicate):
    field: str
    value: Any

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        actual = _resolve_path(self.field, descriptor)
        if actual is _MISSING:
            return False
        return not _same(actual, self.value)

    def __str__(self) -> str:
        return f"{self.field} != {self.value!r}"


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: Tuple[Any, ...]

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        actual = _resolve_path(self.field, descriptor)
        if actual is _MISSING:
            return False
        return any(_same(actual, v) for v in self.values)

    def __str__(self) -> str:
        return f"{self.field} in [{', '.join(repr(v) for v in self.values)}]"


@dataclass(frozen=True)
class All(Predicate):
    items: Tuple[Predicate, ...]

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        return all(p.evaluate(descriptor) for p in self.items)

    def __str__(self) -> str:
        return "(" + " && ".join(str(p) for p in self.items) + ")"


@dataclass(frozen=True)
class AnyOf(Predicate):
    items: Tuple[Predicate, ...]

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        return any(p.evaluate(descriptor) for p in self.items)

    def __str__(self) -> str:
        return "(" + " || ".join(str(p) for p in self.items) + ")"


@dataclass(frozen=True)
class Not(Predicate):
    inner: Predicate

    def evaluate(self, descriptor: Mapping[str, Any]) -> bool:
        return not self.inner.evaluate(descriptor)

    def __str__(self) -> str:
        return f"!{self.inner}"


# ---------------------------------------------------------------------
# Convenience constructors
# ---------------------------------------------------------------------

def on_os(*families: str) -> Predicate:
    """True when the environment's ``os`` attribute is one of ``families``."""
    if len(families) == 1:
        return Eq("os", families[0])
    return In("os", tuple(families))


# ---------------------------------------------------------------------
# Expression parsing
# ---------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<op>&&|\|\||==|!=|!|\(|\)|\[|\]|,)
      | (?P<str>'(?:[^']|'')*'|"[^"]*")
      | (?P<num>-?\d+(?:\.\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z0-9_\-]*(?:\.[A-Za-z_][A-Za-z0-9_\-]*)*)
    )
    """,
    re.VERBOSE,
)

_WRAPPER_RE = re.compile(r"^\s*\$\{\{(?P<body>.*)\}\}\s*$", re.DOTALL)


def _tokenize(text: str) -> List[Tuple[str, Any]]:
    tokens: List[Tuple[str, Any]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ConfigurationError(
                f"Malformed predicate: unexpected character at position {pos}",
                details={"expression": text},
            )
        pos = m.end()
        if m.group("op") is not None:
            tokens.append(("op", m.group("op")))
        elif m.group("str") is not None:
            raw = m.group("str")
            if raw.startswith("'"):
                tokens.append(("lit", raw[1:-1].replace("''", "'")))
            else:
                tokens.append(("lit", raw[1:-1]))
        elif m.group("num") is not None:
            raw = m.group("num")
            tokens.append(("lit", float(raw) if "." in raw else int(raw)))
        else:
            name = m.group("name")
            if name in ("true", "false"):
                tokens.append(("lit", name == "true"))
            elif name == "in":
                tokens.append(("op", "in"))
            else:
                tokens.append(("name", name))
    return tokens


class _Parser:
    """
    Recursive-descent parser.

        expr    := and ('||' and)*
        and     := unary ('&&' unary)*
        unary   := '!' unary | primary
        primary := '(' expr ')' | 'true' | 'false' | comparison
        compare := path ('==' | '!=') literal | path 'in' '[' literal (',' literal)* ']'
    """

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _fail(self, message: str) -> ConfigurationError:
        return ConfigurationError(
            f"Malformed predicate: {message}",
            details={"expression": self.text},
        )

    def _peek(self) -> Tuple[str, Any] | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> Tuple[str, Any]:
        tok = self._peek()
        if tok is None:
            raise self._fail("unexpected end of expression")
        self.pos += 1
        return tok

    def _expect_op(self, op: str) -> None:
        kind, value = self._take()
        if kind != "op" or value != op:
            raise self._fail(f"expected {op!r}, got {value!r}")

    def parse(self) -> Predicate:
        if not self.tokens:
            raise self._fail("empty expression")
        result = self._or()
        if self._peek() is not None:
            raise self._fail(f"unexpected token {self._peek()[1]!r}")
        return result

    def _or(self) -> Predicate:
        items = [self._and()]
        while self._peek() == ("op", "||"):
            self.pos += 1
            items.append(self._and())
        return items[0] if len(items) == 1 else AnyOf(tuple(items))

    def _and(self) -> Predicate:
        items = [self._unary()]
        while self._peek() == ("op", "&&"):
            self.pos += 1
            items.append(self._unary())
        return items[0] if len(items) == 1 else All(tuple(items))

    def _unary(self) -> Predicate:
        if self._peek() == ("op", "!"):
            self.pos += 1
            return Not(self._unary())
        return self._primary()

    def _primary(self) -> Predicate:
        kind, value = self._take()
        if kind == "op" and value == "(":
            inner = self._or()
            self._expect_op(")")
            return inner
        if kind == "lit" and isinstance(value, bool):
            return Always(value)
        if kind != "name":
            raise self._fail(f"expected a field name, got {value!r}")
        return self._comparison(value)

    def _literal(self) -> Any:
        kind, value = self._take()
        if kind != "lit":
            raise self._fail(f"expected a literal, got {value!r}")
        return value

    def _comparison(self, field: str) -> Predicate:
        kind, op = self._take()
        if kind != "op" or op not in ("==", "!=", "in"):
            raise self._fail(f"expected '==', '!=' or 'in' after {field!r}")
        if op == "==":
            return Eq(field, self._literal())
        if op == "!=":
            return NotEq(field, self._literal())
        self._expect_op("[")
        values = [self._literal()]
        while self._peek() == ("op", ","):
            self.pos += 1
            values.append(self._literal())
        self._expect_op("]")
        return In(field, tuple(values))


def parse_predicate(expression: str) -> Predicate:
    """Parse an expression string. Raises ConfigurationError if malformed."""
    m = _WRAPPER_RE.match(expression)
    body = m.group("body") if m else expression
    return _Parser(body.strip()).parse()


PredicateLike = Union[Predicate, str, None]


def compile_predicate(when: PredicateLike) -> Predicate:
    """Normalize a step's ``when`` value into a Predicate (absent -> ALWAYS)."""
    if when is None:
        return ALWAYS
    if isinstance(when, Predicate):
        return when
    if isinstance(when, str):
        return parse_predicate(when)
    raise ConfigurationError(
        f"Predicate must be a Predicate, an expression string or None, got {type(when).__name__}",
    )


def evaluates(predicate: PredicateLike, environment: Any) -> bool:
    """
    Evaluate a step predicate against an environment.

    ``environment`` is either an ``Environment`` (anything with a
    ``descriptor()`` method) or a plain mapping.
    """
    compiled = compile_predicate(predicate)
    descriptor = environment.descriptor() if hasattr(environment, "descriptor") else environment
    return compiled.evaluate(descriptor)
