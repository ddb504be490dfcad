"""
String literal templates.

A quoted literal is decomposed once, at parse time, into an ordered list of
literal and variable regions over a backing text. Evaluation walks the regions
and substitutes variables from the current scope.
"""

from typing import Iterable, Iterator, List, NamedTuple, Tuple

LITERAL = "literal"
VARIABLE = "variable"

QUOTES = ("'", '"')
ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


class Region(NamedTuple):
    kind: str
    start: int
    end: int

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


def is_identifier_boundary(c: str) -> bool:
    """Identifiers are word characters and `%`; anything else ends one."""
    return not (c == "%" or c == "_" or c.isalnum())


def strip_quotes(raw: str) -> str:
    if raw and raw[0] in QUOTES:
        return raw[1:-1] if len(raw) >= 2 else ""
    return raw


class Template:
    """A parsed string literal: backing text plus immutable regions."""

    __slots__ = ("text", "regions")

    def __init__(self, text: str = "", regions: Iterable[Region] = ()):
        self.text = text
        self.regions: Tuple[Region, ...] = tuple(regions)

    @classmethod
    def raw(cls, text: str = "") -> "Template":
        """A template with no regions; it evaluates to a truthy empty value."""
        return cls(text, ())

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        text = self.text
        for region in self.regions:
            yield region.kind, region.slice(text)

    def variables(self) -> List[str]:
        return [piece for kind, piece in self if kind == VARIABLE]

    def __eq__(self, other):
        if isinstance(other, Template):
            return self.text == other.text and self.regions == other.regions
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return f"Template({self.text!r}, {list(self.regions)!r})"


def parse(raw: str, expand_variables: bool = True) -> Template:
    """
    Tokenizes a literal into regions.

    One layer of quotes is stripped. A backslash escapes the next character
    (`n`, `r` and `t` become control characters). With `expand_variables`, an
    unescaped `$` followed by an identifier character opens a variable region
    that runs to the next identifier boundary; the `$` itself is not part of
    the backing text.
    """
    body = strip_quotes(raw)
    out: List[str] = []
    regions: List[Region] = []
    kind = None
    start = 0
    i, n = 0, len(body)
    while i < n:
        c = body[i]
        i += 1
        escaped = False
        if c == "\\":
            if i >= n:
                break
            c = ESCAPES.get(body[i], body[i])
            i += 1
            escaped = True

        if expand_variables and c == "$" and not escaped and i < n and not is_identifier_boundary(body[i]):
            if kind is not None and len(out) > start:
                regions.append(Region(kind, start, len(out)))
            kind = VARIABLE
            start = len(out)
            continue

        if kind is None:
            kind = LITERAL
            start = len(out)
        elif kind == VARIABLE and is_identifier_boundary(c):
            regions.append(Region(VARIABLE, start, len(out)))
            kind = LITERAL
            start = len(out)
        out.append(c)

    if kind is not None and len(out) > start:
        regions.append(Region(kind, start, len(out)))
    return Template("".join(out), regions)
