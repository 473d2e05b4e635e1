"""Python source tree — tagged-variant nodes, exact parse/render and a visitor."""

from __future__ import annotations

import ast
import io
import keyword
import token
import tokenize
from dataclasses import dataclass
from typing import Callable, Iterator

from kindling.errors import SyntaxTreeError

# f-strings (3.12+) and t-strings (3.14+) are tokenized piecewise; they are
# collapsed back into a single literal so their interiors stay opaque.
_INTERPOLATED_START = {
    t for t in (getattr(token, "FSTRING_START", None), getattr(token, "TSTRING_START", None)) if t
}
_INTERPOLATED_END = {
    t for t in (getattr(token, "FSTRING_END", None), getattr(token, "TSTRING_END", None)) if t
}

_QUOTES = ('"""', "'''", '"', "'")


# --- Nodes ---


@dataclass(frozen=True)
class Text:
    """Source text the engine never rewrites (keywords, operators, whitespace)."""

    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Comment:
    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class DottedName:
    """A qualified identifier such as ``pkg.module.Thing``, as ordered segments."""

    segments: tuple[str, ...]

    def render(self) -> str:
        return ".".join(self.segments)

    @property
    def head(self) -> str:
        return self.segments[0]


@dataclass(frozen=True)
class String:
    """A string literal token, prefix and quotes included."""

    text: str

    def render(self) -> str:
        return self.text

    @property
    def prefix(self) -> str:
        i = 0
        while i < len(self.text) and self.text[i] not in "'\"":
            i += 1
        return self.text[:i]

    @property
    def quote(self) -> str:
        body = self.text[len(self.prefix):]
        for quote in _QUOTES:
            if body.startswith(quote):
                return quote
        return ""

    @property
    def value(self) -> str | None:
        """The literal's value for plain (non-bytes, non-interpolated) strings."""
        if any(c in self.prefix.lower() for c in "fbt"):
            return None
        try:
            value = ast.literal_eval(self.text)
        except (SyntaxError, ValueError):
            return None
        return value if isinstance(value, str) else None

    def with_value(self, value: str) -> String:
        """Return a literal holding ``value`` with the same prefix and quotes."""
        quote = self.quote
        if "r" in self.prefix.lower() or quote[0] in value or "\\" in value or "\n" in value:
            return String(repr(value))
        return String(f"{self.prefix}{quote}{value}{quote}")


Node = Text | Comment | DottedName | String


@dataclass(frozen=True)
class Module:
    """A parsed source file: a flat sequence of nodes whose renders concatenate to the file."""

    nodes: tuple[Node, ...] = ()

    @classmethod
    def of(cls, nodes) -> Module:
        """Build a module, merging adjacent text and dropping empty text."""
        merged: list[Node] = []
        for node in nodes:
            if isinstance(node, Text):
                if not node.text:
                    continue
                if merged and isinstance(merged[-1], Text):
                    merged[-1] = Text(merged[-1].text + node.text)
                    continue
            merged.append(node)
        return cls(tuple(merged))

    def render(self) -> str:
        return "".join(node.render() for node in self.nodes)


# --- Visitor ---


def transform(module: Module, fn: Callable[[Node], Node]) -> Module:
    """Rebuild ``module`` bottom-up, replacing every node with ``fn(node)``."""
    return Module.of(fn(node) for node in module.nodes)


def walk(module: Module) -> Iterator[Node]:
    yield from module.nodes


def render(module: Module) -> str:
    return module.render()


# --- Parsing ---


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    kind: str  # name | keyword | dot | string | comment


def parse(source: str, filename: str = "<source>") -> Module:
    """Parse Python source into a module that renders back to ``source`` exactly.

    Raises:
        SyntaxTreeError: If the source is not valid Python.
    """
    try:
        ast.parse(source, filename=filename)
        spans = list(_spans(source))
    except (SyntaxError, tokenize.TokenError) as e:
        raise SyntaxTreeError(f"{filename} is not valid Python: {e}") from e

    nodes: list[Node] = []
    cursor = 0
    i = 0
    while i < len(spans):
        span = spans[i]
        nodes.append(Text(source[cursor:span.start]))
        text = source[span.start:span.end]

        if span.kind == "name" and not (i > 0 and spans[i - 1].kind == "dot"):
            segments = [text]
            end = span.end
            j = i + 1
            while (
                j + 1 < len(spans)
                and spans[j].kind == "dot"
                and spans[j].start == end
                and spans[j + 1].kind == "name"
                and spans[j + 1].start == spans[j].end
            ):
                segments.append(source[spans[j + 1].start:spans[j + 1].end])
                end = spans[j + 1].end
                j += 2
            nodes.append(DottedName(tuple(segments)))
            cursor = end
            i = j
            continue

        if span.kind == "comment":
            nodes.append(Comment(text))
        elif span.kind == "string":
            nodes.append(String(text))
        else:
            nodes.append(Text(text))
        cursor = span.end
        i += 1

    nodes.append(Text(source[cursor:]))
    module = Module.of(nodes)
    if module.render() != source:
        raise SyntaxTreeError(f"{filename} could not be parsed without loss")
    return module


def _spans(source: str) -> Iterator[_Span]:
    offsets = _line_offsets(source)

    def at(position: tuple[int, int]) -> int:
        row, col = position
        return offsets[row - 1] + col

    depth = 0
    interpolated_start = 0
    for tok in tokenize.generate_tokens(io.StringIO(source).readline):
        if tok.type in _INTERPOLATED_START:
            if depth == 0:
                interpolated_start = at(tok.start)
            depth += 1
            continue
        if tok.type in _INTERPOLATED_END:
            depth -= 1
            if depth == 0:
                yield _Span(interpolated_start, at(tok.end), "string")
            continue
        if depth:
            continue

        if tok.type == token.NAME:
            kind = "keyword" if keyword.iskeyword(tok.string) else "name"
        elif tok.type == token.STRING:
            kind = "string"
        elif tok.type == token.COMMENT:
            kind = "comment"
        elif tok.exact_type == token.DOT:
            kind = "dot"
        else:
            continue
        yield _Span(at(tok.start), at(tok.end), kind)


def _line_offsets(source: str) -> list[int]:
    offsets = [0]
    position = 0
    for line in io.StringIO(source):
        position += len(line)
        offsets.append(position)
    offsets.append(position)
    return offsets
