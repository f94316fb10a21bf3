"""Rust symbol name decoding (legacy and v0 mangling).

Decoding is a pure function of the input string. Names that match neither
grammar are returned verbatim as :attr:`ManglingScheme.OPAQUE` results;
decoding never raises.

Examples:
    '_ZN4core3fmt5write17h0123456789abcdefE' -> crate 'core', 'core::fmt::write'
    '_RNvCs1234_7mycrate4main'               -> crate 'mycrate', 'mycrate::main'
    'memcpy'                                 -> opaque, no crate
"""

import re
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional, Tuple


class ManglingScheme(Enum):
    """Grammar a symbol name was decoded with."""
    LEGACY = "legacy"
    V0 = "v0"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class DecodedName:
    """Structured result of decoding one symbol name."""
    scheme: ManglingScheme
    demangled: str
    crate: Optional[str] = None
    segments: Tuple[str, ...] = ()
    hash: Optional[str] = None

    @property
    def is_opaque(self) -> bool:
        return self.scheme is ManglingScheme.OPAQUE


@lru_cache(maxsize=65536)
def decode_name(name: str) -> DecodedName:
    """Decode ``name`` as legacy, then v0, falling back to opaque."""
    for decoder in (_decode_legacy, _decode_v0):
        result = decoder(name)
        if result is not None:
            return result
    return DecodedName(scheme=ManglingScheme.OPAQUE, demangled=name)


def demangle(name: str) -> str:
    """Human-readable form of ``name`` (the name itself if undecodable)."""
    return decode_name(name).demangled


def crate_name(name: str) -> Optional[str]:
    """Crate identifier encoded in ``name``, or None for opaque names."""
    return decode_name(name).crate


# ---------------------------------------------------------------------------
# Legacy mangling: _ZN <len><ident>... E
# ---------------------------------------------------------------------------

_LEGACY_PREFIXES = ("__ZN", "_ZN", "ZN")
_LEGACY_ESCAPES = {
    "SP": "@",
    "BP": "*",
    "RF": "&",
    "LT": "<",
    "GT": ">",
    "LP": "(",
    "RP": ")",
    "C": ",",
}
_HASH_RE = re.compile(r"^h[0-9a-f]{16}$")
_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TYPE_PREFIXES = ("&mut ", "&", "*const ", "*mut ", "mut ", "dyn ")


def _decode_legacy(name: str) -> Optional[DecodedName]:
    for prefix in _LEGACY_PREFIXES:
        if name.startswith(prefix):
            inner = name[len(prefix):]
            break
    else:
        return None
    if not inner.isascii():
        return None

    elements = []
    pos = 0
    while True:
        if pos >= len(inner):
            return None
        if inner[pos] == "E":
            pos += 1
            break
        start = pos
        while pos < len(inner) and inner[pos].isdigit():
            pos += 1
        if pos == start:
            return None
        length = int(inner[start:pos])
        if length == 0 or pos + length > len(inner):
            return None
        elements.append(inner[pos:pos + length])
        pos += length

    # Anything after the terminator must be a suffix such as ".llvm.1234";
    # Itanium C++ names carry a parameter list here instead.
    rest = inner[pos:]
    if (rest and rest[0] not in ".$") or not elements:
        return None

    digest = None
    if len(elements) > 1 and _HASH_RE.match(elements[-1]):
        digest = elements.pop()[1:]

    segments = tuple(_unescape_legacy(e) for e in elements)
    crate = _legacy_crate(segments) if len(segments) > 1 else None
    return DecodedName(
        scheme=ManglingScheme.LEGACY,
        demangled="::".join(segments),
        crate=crate,
        segments=segments,
        hash=digest,
    )


def _unescape_legacy(element: str) -> str:
    if element.startswith("_$"):
        element = element[1:]
    out = []
    i = 0
    while i < len(element):
        c = element[i]
        if c == "$":
            end = element.find("$", i + 1)
            if end == -1:
                out.append(element[i:])
                break
            code = element[i + 1:end]
            if code in _LEGACY_ESCAPES:
                out.append(_LEGACY_ESCAPES[code])
            elif code.startswith("u") and len(code) > 1 and all(
                ch in "0123456789abcdef" for ch in code[1:]
            ):
                out.append(chr(int(code[1:], 16)))
            else:
                out.append(element[i:end + 1])
            i = end + 1
        elif element.startswith("..", i):
            out.append("::")
            i += 2
        elif element.startswith(".$GT$", i):
            # rustc writes the "->" of fn signatures as ".>"
            out.append("->")
            i += 5
        else:
            out.append(c)
            i += 1
    return "".join(out)


def _split_as(text: str) -> Tuple[str, Optional[str]]:
    """Split ``T as Trait`` at the top nesting level."""
    depth = 0
    for i, c in enumerate(text):
        if c in "<[(":
            depth += 1
        elif c in ">])":
            if c == ">" and i and text[i - 1] in ".-":
                continue
            depth = max(depth - 1, 0)
        elif depth == 0 and text.startswith(" as ", i):
            return text[:i], text[i + 4:]
    return text, None


def _path_root(text: str) -> Optional[str]:
    """Leading crate of a path written as text, or None for non-paths."""
    stripped = True
    while stripped:
        stripped = False
        for prefix in _TYPE_PREFIXES:
            if text.startswith(prefix):
                text = text[len(prefix):]
                stripped = True
    if "::" not in text:
        return None
    root = text.split("::", 1)[0]
    return root if _IDENT_RE.match(root) else None


def _legacy_crate(segments: Tuple[str, ...]) -> Optional[str]:
    first = segments[0]
    if not first.startswith("<"):
        return first if _IDENT_RE.match(first) else None
    inner = first[1:-1] if first.endswith(">") else first[1:]
    self_type, trait = _split_as(inner)
    crate = _path_root(self_type)
    if crate is None and trait is not None:
        crate = _path_root(trait)
    return crate


# ---------------------------------------------------------------------------
# v0 mangling: _R <path> [<instantiating-crate>] [<suffix>]
# ---------------------------------------------------------------------------

_V0_PREFIXES = ("__R", "_R", "R")
_MAX_DEPTH = 200

_BASIC_TYPES = {
    "a": "i8",
    "b": "bool",
    "c": "char",
    "d": "f64",
    "e": "str",
    "f": "f32",
    "h": "u8",
    "i": "isize",
    "j": "usize",
    "l": "i32",
    "m": "u32",
    "n": "i128",
    "o": "u128",
    "s": "i16",
    "t": "u16",
    "u": "()",
    "v": "...",
    "x": "i64",
    "y": "u64",
    "z": "!",
    "p": "_",
}
_SIGNED = {"a", "s", "l", "x", "n", "i"}
_UNSIGNED = {"h", "t", "m", "y", "o", "j"}

# segments: display pieces joined by "::"; crate: owning crate or None
_Path = namedtuple("_Path", "segments crate")
_Type = namedtuple("_Type", "text crate")


class _Invalid(Exception):
    """Raised internally when a v0 name does not follow the grammar."""


def _decode_v0(name: str) -> Optional[DecodedName]:
    for prefix in _V0_PREFIXES:
        if name.startswith(prefix):
            inner = name[len(prefix):]
            break
    else:
        return None
    # A leading decimal encoding version is not produced by any released compiler.
    if not inner or not inner.isascii() or inner[0].isdigit():
        return None

    parser = _V0Parser(inner)
    try:
        path = parser.path(in_value=True)
        if parser.peek() is not None and parser.peek().isupper():
            parser.path(in_value=False)  # instantiating crate, not displayed
    except (_Invalid, RecursionError):
        return None
    rest = inner[parser.pos:]
    if rest and rest[0] not in ".$":
        return None

    return DecodedName(
        scheme=ManglingScheme.V0,
        demangled="::".join(path.segments),
        crate=path.crate,
        segments=path.segments,
    )


class _V0Parser:
    """Recursive-descent parser over the part of a v0 name after ``_R``."""

    def __init__(self, sym: str):
        self.sym = sym
        self.pos = 0
        self.depth = 0
        self._memo = {}

    # -- lexical helpers ---------------------------------------------------

    def peek(self) -> Optional[str]:
        return self.sym[self.pos] if self.pos < len(self.sym) else None

    def next(self) -> str:
        if self.pos >= len(self.sym):
            raise _Invalid()
        c = self.sym[self.pos]
        self.pos += 1
        return c

    def eat(self, c: str) -> bool:
        if self.peek() == c:
            self.pos += 1
            return True
        return False

    def base62(self) -> int:
        if self.eat("_"):
            return 0
        value = 0
        while True:
            c = self.next()
            if c == "_":
                return value + 1
            if c.isdigit():
                digit = ord(c) - ord("0")
            elif "a" <= c <= "z":
                digit = ord(c) - ord("a") + 10
            elif "A" <= c <= "Z":
                digit = ord(c) - ord("A") + 36
            else:
                raise _Invalid()
            value = value * 62 + digit

    def decimal(self) -> int:
        c = self.next()
        if not c.isdigit():
            raise _Invalid()
        if c == "0":
            return 0
        value = int(c)
        while self.peek() is not None and self.peek().isdigit():
            value = value * 10 + int(self.next())
        return value

    def disambiguator(self) -> int:
        return self.base62() + 1 if self.eat("s") else 0

    def raw_identifier(self) -> str:
        punycode = self.eat("u")
        length = self.decimal()
        self.eat("_")
        end = self.pos + length
        if end > len(self.sym):
            raise _Invalid()
        text = self.sym[self.pos:end]
        self.pos = end
        return _decode_punycode(text) if punycode else text

    def identifier(self) -> Tuple[int, str]:
        dis = self.disambiguator()
        return dis, self.raw_identifier()

    def backref(self, parse):
        start = self.pos - 1
        target = self.base62()
        if target >= start:
            raise _Invalid()
        saved = self.pos
        self.pos = target
        try:
            return parse()
        finally:
            self.pos = saved

    def _enter(self):
        self.depth += 1
        if self.depth > _MAX_DEPTH:
            raise _Invalid()

    # -- grammar -------------------------------------------------------------

    def path(self, in_value: bool) -> _Path:
        key = ("path", self.pos, in_value)
        if key in self._memo:
            result, end = self._memo[key]
            self.pos = end
            return result
        self._enter()
        try:
            result = self._path(in_value)
        finally:
            self.depth -= 1
        self._memo[key] = (result, self.pos)
        return result

    def _path(self, in_value: bool) -> _Path:
        tag = self.next()
        if tag == "C":
            _, name = self.identifier()
            return _Path((name,), name)
        if tag == "N":
            namespace = self.next()
            if not namespace.isalpha():
                raise _Invalid()
            parent = self.path(in_value)
            dis, name = self.identifier()
            return _Path(parent.segments + (_nested_segment(namespace, dis, name),), parent.crate)
        if tag == "M":
            self.disambiguator()
            impl_path = self.path(in_value=False)
            self_type = self.type()
            return _Path((f"<{self_type.text}>",), self_type.crate or impl_path.crate)
        if tag == "X":
            self.disambiguator()
            impl_path = self.path(in_value=False)
            self_type = self.type()
            trait = self.path(in_value=False)
            segment = f"<{self_type.text} as {'::'.join(trait.segments)}>"
            return _Path((segment,), self_type.crate or impl_path.crate)
        if tag == "Y":
            self_type = self.type()
            trait = self.path(in_value=False)
            segment = f"<{self_type.text} as {'::'.join(trait.segments)}>"
            return _Path((segment,), self_type.crate or trait.crate)
        if tag == "I":
            inner = self.path(in_value)
            args = []
            while not self.eat("E"):
                args.append(self.generic_arg())
            separator = "::" if in_value else ""
            last = f"{inner.segments[-1]}{separator}<{', '.join(args)}>"
            return _Path(inner.segments[:-1] + (last,), inner.crate)
        if tag == "B":
            return self.backref(lambda: self.path(in_value))
        raise _Invalid()

    def generic_arg(self) -> str:
        if self.eat("L"):
            self.base62()
            return "'_"
        if self.eat("K"):
            return self.const()
        return self.type().text

    def type(self) -> _Type:
        key = ("type", self.pos)
        if key in self._memo:
            result, end = self._memo[key]
            self.pos = end
            return result
        self._enter()
        try:
            result = self._type()
        finally:
            self.depth -= 1
        self._memo[key] = (result, self.pos)
        return result

    def _type(self) -> _Type:
        c = self.peek()
        if c is None:
            raise _Invalid()
        if c in _BASIC_TYPES:
            self.pos += 1
            return _Type(_BASIC_TYPES[c], None)
        if c in "CNMXYI":
            path = self.path(in_value=False)
            return _Type("::".join(path.segments), path.crate)

        self.pos += 1
        if c == "A":
            element = self.type()
            length = self.const()
            return _Type(f"[{element.text}; {length}]", None)
        if c == "S":
            element = self.type()
            return _Type(f"[{element.text}]", None)
        if c == "T":
            items = []
            while not self.eat("E"):
                items.append(self.type().text)
            if len(items) == 1:
                return _Type(f"({items[0]},)", None)
            return _Type(f"({', '.join(items)})", None)
        if c in "RQ":
            if self.eat("L"):
                self.base62()
            inner = self.type()
            prefix = "&" if c == "R" else "&mut "
            return _Type(prefix + inner.text, inner.crate)
        if c in "PO":
            inner = self.type()
            prefix = "*const " if c == "P" else "*mut "
            return _Type(prefix + inner.text, inner.crate)
        if c == "F":
            return _Type(self.fn_sig(), None)
        if c == "D":
            text, crate = self.dyn_bounds()
            if not self.eat("L"):
                raise _Invalid()
            self.base62()
            return _Type(text, crate)
        if c == "B":
            return self.backref(self.type)
        raise _Invalid()

    def fn_sig(self) -> str:
        if self.eat("G"):
            self.base62()
        is_unsafe = self.eat("U")
        abi = None
        if self.eat("K"):
            abi = "C" if self.eat("C") else self.raw_identifier().replace("_", "-")
        params = []
        while not self.eat("E"):
            params.append(self.type().text)
        ret = self.type().text
        text = "unsafe " if is_unsafe else ""
        if abi:
            text += f'extern "{abi}" '
        text += f"fn({', '.join(params)})"
        if ret != "()":
            text += f" -> {ret}"
        return text

    def dyn_bounds(self) -> Tuple[str, Optional[str]]:
        if self.eat("G"):
            self.base62()
        traits = []
        crate = None
        while not self.eat("E"):
            trait = self.path(in_value=False)
            text = "::".join(trait.segments)
            bindings = []
            while self.eat("p"):
                assoc = self.raw_identifier()
                bindings.append(f"{assoc} = {self.type().text}")
            if bindings:
                joined = ", ".join(bindings)
                text = text[:-1] + f", {joined}>" if text.endswith(">") else text + f"<{joined}>"
            traits.append(text)
            if crate is None:
                crate = trait.crate
        return "dyn " + " + ".join(traits), crate

    def const(self) -> str:
        if self.eat("p"):
            return "_"
        if self.eat("B"):
            return self.backref(self.const)
        ty = self.next()
        negative = self.eat("n")
        digits = []
        while not self.eat("_"):
            c = self.next()
            if c not in "0123456789abcdef":
                raise _Invalid()
            digits.append(c)
        value = int("".join(digits), 16) if digits else 0
        if ty == "b":
            if value > 1:
                raise _Invalid()
            return "true" if value else "false"
        if ty == "c":
            return repr(chr(value))
        if ty in _UNSIGNED or ty in _SIGNED:
            return str(-value if negative else value)
        raise _Invalid()


def _nested_segment(namespace: str, dis: int, name: str) -> str:
    if namespace == "C":
        label = "closure"
    elif namespace == "S":
        label = "shim"
    elif namespace.isupper():
        label = namespace
    else:
        return name
    if name:
        return f"{{{label}:{name}#{dis}}}"
    return f"{{{label}#{dis}}}"


def _decode_punycode(text: str) -> str:
    # v0 uses '_' where RFC 3492 uses '-' as the basic/extended delimiter.
    if "_" in text:
        basic, extended = text.rsplit("_", 1)
        text = f"{basic}-{extended}"
    try:
        return text.encode("ascii").decode("punycode")
    except (UnicodeError, ValueError) as exc:
        raise _Invalid() from exc
