from __future__ import annotations

from typing import Iterable, List

GO_KEYWORDS = frozenset([
    "break", "case", "chan", "const", "continue", "default", "defer", "else",
    "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
    "map", "package", "range", "return", "select", "struct", "switch", "type",
    "var",
])

# Method names every generated message may carry. A field whose name would
# collide with one of these gets an underscore appended, which changes the
# generated API, so this list must stay stable.
RESERVED_METHOD_NAMES = (
    "Reset",
    "String",
    "ProtoMessage",
    "Marshal",
    "Unmarshal",
    "ExtensionRangeArray",
    "ExtensionMap",
    "Descriptor",
)

_GO_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\\": "\\\\",
    '"': '\\"',
}


def _is_ascii_lower(c: str) -> bool:
    return "a" <= c <= "z"


def _is_ascii_digit(c: str) -> bool:
    return "0" <= c <= "9"


def camel_case(s: str) -> str:
    """Return the CamelCased form of a proto identifier.

    An interior underscore followed by a lower case letter is dropped and the
    letter upper-cased; a leading underscore becomes "X". Digits are treated
    as words of their own, so "_my_field_name_2" becomes "XMyFieldName_2".
    """
    if not s:
        return ""
    out: List[str] = []
    i = 0
    n = len(s)
    if s[0] == "_":
        out.append("X")
        i = 1
    while i < n:
        c = s[i]
        if c == "_" and i + 1 < n and _is_ascii_lower(s[i + 1]):
            i += 1
            continue
        if _is_ascii_digit(c):
            out.append(c)
            i += 1
            continue
        if _is_ascii_lower(c):
            c = c.upper()
        out.append(c)
        # Swallow the lower case run that completes this word.
        while i + 1 < n and _is_ascii_lower(s[i + 1]):
            i += 1
            out.append(s[i])
        i += 1
    return "".join(out)


def camel_case_slice(elems: Iterable[str]) -> str:
    """CamelCase of the elements joined with "_"."""
    return camel_case("_".join(elems))


def dotted_slice(elems: Iterable[str]) -> str:
    return ".".join(elems)


def upper_case(s: str) -> str:
    """Upper-case a CamelCase or snake_case name, words separated by "_"."""
    out: List[str] = []
    for i, c in enumerate(s):
        if c.isupper() and i > 0 and (s[i - 1].islower() or s[i - 1].isdigit()):
            out.append("_")
        out.append(c.upper())
    return "".join(out)


def bad_to_underscore(name: str) -> str:
    """Replace every character that cannot appear in a Go identifier with "_"."""
    return "".join(
        c if c.isalpha() or c.isdecimal() or c == "_" else "_"
        for c in name
    )


def base_name(name: str) -> str:
    """Last path element of name with its final dotted suffix removed."""
    name = name.rsplit("/", 1)[-1]
    if "." in name:
        name = name[:name.rindex(".")]
    return name


def go_quote(s: str) -> str:
    """Quote s as a Go interpreted string literal (strconv.Quote rules)."""
    out = ['"']
    for c in s:
        if c in _GO_ESCAPES:
            out.append(_GO_ESCAPES[c])
        elif c == " " or (c.isprintable() and c != "\x7f"):
            out.append(c)
        elif ord(c) < 0x80:
            out.append(f"\\x{ord(c):02x}")
        elif ord(c) < 0x10000:
            out.append(f"\\u{ord(c):04x}")
        else:
            out.append(f"\\U{ord(c):08x}")
    out.append('"')
    return "".join(out)


class IdentifierAllocator:
    """Hands out collision-free member names inside one generated type.

    Names are allocated in batches (for instance a field and its getter).
    If any name of a batch is taken, every name of the batch gets an
    underscore appended and the batch is tried again, so the members of a
    batch stay recognizably paired.
    """

    def __init__(self, reserved: Iterable[str] = RESERVED_METHOD_NAMES):
        self._used = set(reserved)

    def allocate(self, *names: str) -> List[str]:
        batch = list(names)
        while any(n in self._used for n in batch):
            batch = [n + "_" for n in batch]
        self._used.update(batch)
        return batch

    def __contains__(self, name: str) -> bool:
        return name in self._used
