from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

from protoc_gen_cgi.models import ImportedDescriptor
from protoc_gen_cgi.naming import camel_case_slice

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator

logger = logging.getLogger(__name__)


def oneof_signatures(proto: str) -> Tuple[str, str, str]:
    enc = f"(msg {proto}.Message, b *{proto}.Buffer) error"
    dec = f"(msg {proto}.Message, tag, wire int, b *{proto}.Buffer) (bool, error)"
    size = f"(msg {proto}.Message) (n int)"
    return enc, dec, size


@dataclass
class GetterSymbol:
    """An accessor of an exported message, as needed to forward it.

    For message and enum typed getters (gen_type) the element type is
    rebuilt in the importing file from type_name, since the Go type the
    defining file uses may not be visible there.
    """

    name: str
    typ: str
    type_name: str = ""
    gen_type: bool = False
    repeated: bool = False
    star: bool = False
    map_key: Optional[str] = None


@dataclass
class MessageSymbol:
    sym: str
    has_extensions: bool = False
    is_message_set: bool = False
    has_oneof: bool = False
    getters: List[GetterSymbol] = field(default_factory=list)

    def generate_alias(self, g: FileGenerator, pkg: str) -> None:
        remote = f"{pkg}.{self.sym}"
        proto = g.pkg("proto")

        g.p("type ", self.sym, " ", remote)
        g.p("func (m *", self.sym, ") Reset() { (*", remote, ")(m).Reset() }")
        g.p("func (m *", self.sym, ") String() string { return (*", remote, ")(m).String() }")
        g.p("func (*", self.sym, ") ProtoMessage() {}")
        if self.has_extensions:
            g.p("func (*", self.sym, ") ExtensionRangeArray() []", proto, ".ExtensionRange ",
                "{ return (*", remote, ")(nil).ExtensionRangeArray() }")
            if self.is_message_set:
                g.p("func (m *", self.sym, ") Marshal() ([]byte, error) ",
                    "{ return (*", remote, ")(m).Marshal() }")
                g.p("func (m *", self.sym, ") Unmarshal(buf []byte) error ",
                    "{ return (*", remote, ")(m).Unmarshal(buf) }")
        if self.has_oneof:
            self._generate_oneof_bridge(g, remote)
        for getter in self.getters:
            self._forward_getter(g, remote, getter)

    def _generate_oneof_bridge(self, g: FileGenerator, remote: str) -> None:
        # Good enough for the binary format; text and JSON see the remote type.
        enc = f"_{self.sym}_OneofMarshaler"
        dec = f"_{self.sym}_OneofUnmarshaler"
        size = f"_{self.sym}_OneofSizer"
        enc_sig, dec_sig, size_sig = oneof_signatures(g.pkg("proto"))

        g.p("func (m *", self.sym, ") XXX_OneofFuncs() (func", enc_sig, ", func", dec_sig,
            ", func", size_sig, ", []interface{}) {")
        with g.indented():
            g.p("return ", enc, ", ", dec, ", ", size, ", nil")
        g.p("}")
        for fname, sig, unpack, call in (
            (enc, enc_sig, "enc, _, _, _", "enc(m0, b)"),
            (dec, dec_sig, "_, dec, _, _", "dec(m0, tag, wire, b)"),
            (size, size_sig, "_, _, size, _", "size(m0)"),
        ):
            g.p("func ", fname, sig, " {")
            with g.indented():
                g.p("m := msg.(*", self.sym, ")")
                g.p("m0 := (*", remote, ")(m)")
                g.p(unpack, " := m0.XXX_OneofFuncs()")
                g.p("return ", call)
            g.p("}")

    def _forward_getter(self, g: FileGenerator, remote: str, getter: GetterSymbol) -> None:
        val = f"(*{remote})(m).{getter.name}()"
        if not getter.gen_type:
            g.p("func (m *", self.sym, ") ", getter.name, "() ", getter.typ, " { return ", val, " }")
            return

        local = _local_element(g, getter.type_name)
        if local is None:
            logger.warning(
                "not forwarding %s.%s into %s: %s is not visible there",
                self.sym, getter.name, g.file.name, getter.type_name,
            )
            return
        elem, convert = local
        if getter.star:
            elem = "*" + elem
        if getter.map_key is not None:
            typ = f"map[{getter.map_key}]{elem}"
        elif getter.repeated:
            typ = "[]" + elem
        else:
            typ = elem

        head = f"func (m *{self.sym}) {getter.name}() {typ} {{"
        if not convert:
            g.p(head, " return ", val, " }")
            return

        # Go has no conversion between slice or map types whose element
        # types are distinct named types, so copy element by element.
        ctyp = f"({elem})" if getter.star else elem
        if getter.map_key is None and not getter.repeated:
            g.p(head, " return ", ctyp, "(", val, ") }")
            return
        g.p(head)
        with g.indented():
            g.p("o := ", val)
            g.p("if o == nil {")
            with g.indented():
                g.p("return nil")
            g.p("}")
            if getter.map_key is not None:
                g.p("s := make(", typ, ", len(o))")
                g.p("for k, v := range o {")
                with g.indented():
                    g.p("s[k] = ", ctyp, "(v)")
            else:
                g.p("s := make(", typ, ", len(o))")
                g.p("for i, x := range o {")
                with g.indented():
                    g.p("s[i] = ", ctyp, "(x)")
            g.p("}")
            g.p("return s")
        g.p("}")


def _local_element(g: FileGenerator, type_name: str) -> Optional[Tuple[str, bool]]:
    """How the importing file can name type_name: (type expression, convert).

    A type the file re-exports itself is named by its local alias and needs
    a conversion. A type of the file itself or of a direct dependency is the
    very same Go type, so it is forwarded unchanged.
    """
    table = g.session.type_table
    obj = table.lookup(type_name)
    if obj is None:
        return None
    for alias in g.file.imported:
        if alias.target is obj:
            return camel_case_slice(obj.type_name()), True
    if table.is_direct(obj, g.file):
        g.used_packages.add(obj.package_name())
        return g.type_name(obj), False
    return None


@dataclass
class EnumSymbol:
    name: str
    proto3: bool = False

    def generate_alias(self, g: FileGenerator, pkg: str) -> None:
        s = self.name
        remote = f"{pkg}.{s}"
        g.p("type ", s, " ", remote)
        g.p("var ", s, "_name = ", remote, "_name")
        g.p("var ", s, "_value = ", remote, "_value")
        g.p("func (x ", s, ") String() string { return (", remote, ")(x).String() }")
        if not self.proto3:
            g.p("func (x ", s, ") Enum() *", s, " { return (*", s, ")((", remote, ")(x).Enum()) }")
            g.p("func (x *", s, ") UnmarshalJSON(data []byte) error { return (*", remote,
                ")(x).UnmarshalJSON(data) }")


@dataclass
class ConstOrVarSymbol:
    sym: str
    typ: str
    cast: str = ""

    def generate_alias(self, g: FileGenerator, pkg: str) -> None:
        v = f"{pkg}.{self.sym}"
        if self.cast:
            v = f"{self.cast}({v})"
        g.p(self.typ, " ", self.sym, " = ", v)


def generate_imported(g: FileGenerator, alias: ImportedDescriptor) -> None:
    """Forwarding declarations for one publicly imported object."""
    sn = alias.type_name()[-1]
    df = alias.target.file
    if g.session.is_generated(df):
        # Already part of the package we are writing.
        g.p("// Ignoring public import of ", sn, " from ", df.name)
        g.p()
        return
    g.p("// ", sn, " from public import ", df.name)
    g.used_packages.add(df.package_name)
    for sym in df.exported.get(alias.target, []):
        sym.generate_alias(g, df.package_name)
    g.p()
