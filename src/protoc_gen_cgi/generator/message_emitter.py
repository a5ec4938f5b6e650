from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.generator.extension_emitter import generate_extension
from protoc_gen_cgi.generator.oneof_emitter import generate_oneof_funcs
from protoc_gen_cgi.generator.symbols import ConstOrVarSymbol, GetterSymbol, MessageSymbol
from protoc_gen_cgi.generator.type_mapper import (
    default_constant,
    go_tag,
    go_type,
    in_oneof,
    is_repeated,
    needs_star,
    underlying,
)
from protoc_gen_cgi.models import (
    MESSAGE_FIELD_PATH,
    MESSAGE_ONEOF_PATH,
    EnumDescriptor,
    MessageDescriptor,
)
from protoc_gen_cgi.naming import IdentifierAllocator, camel_case, camel_case_slice, go_quote

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator

logger = logging.getLogger(__name__)

FieldProto = descriptor_pb2.FieldDescriptorProto

# google.protobuf messages that get an XXX_WellKnownType method.
WELL_KNOWN_TYPES = frozenset([
    "Any", "Duration", "Empty", "Struct", "Timestamp",
    "Value", "ListValue", "DoubleValue", "FloatValue", "Int64Value",
    "UInt64Value", "Int32Value", "UInt32Value", "BoolValue", "StringValue",
    "BytesValue",
])


@dataclass
class FieldLayout:
    proto: FieldProto
    index: int
    name: str
    getter: str
    typ: str
    wire: str
    tag: str
    map_key: Optional[str] = None
    map_value: Optional[FieldProto] = None
    oneof_type: str = ""


@dataclass
class OneofLayout:
    index: int
    decl: descriptor_pb2.OneofDescriptorProto
    field_name: str
    disc: str
    members: List[FieldLayout] = field(default_factory=list)


@dataclass
class MessageLayout:
    """Names, types and tags of every member of a message, fixed up front.

    Computing all of this before printing means the oneof comment that lists
    the member types can be written in place.
    """

    message: MessageDescriptor
    cc_type_name: str
    fields: List[FieldLayout] = field(default_factory=list)
    oneofs_by_index: Dict[int, OneofLayout] = field(default_factory=dict)

    @property
    def oneofs(self) -> List[OneofLayout]:
        return [self.oneofs_by_index[i] for i in sorted(self.oneofs_by_index)]

    def oneof_members(self) -> List[FieldLayout]:
        return [fl for fl in self.fields if in_oneof(fl.proto)]


def build_layout(g: FileGenerator, message: MessageDescriptor) -> MessageLayout:
    cc = camel_case_slice(message.type_name())
    layout = MessageLayout(message=message, cc_type_name=cc)
    names = IdentifierAllocator()

    for i, f in enumerate(message.proto.field):
        base = camel_case(f.name)
        name, getter = names.allocate(base, "Get" + base)
        typ, wire = go_type(g, message, f)
        tag = f"protobuf:{go_tag(g, message, f, wire)} json:{go_quote(f.name + ',omitempty')}"
        fl = FieldLayout(proto=f, index=i, name=name, getter=getter, typ=typ, wire=wire, tag=tag)

        if in_oneof(f) and f.oneof_index not in layout.oneofs_by_index:
            decl = message.proto.oneof_decl[f.oneof_index]
            fname = names.allocate(camel_case(decl.name))[0]
            layout.oneofs_by_index[f.oneof_index] = OneofLayout(
                index=f.oneof_index, decl=decl, field_name=fname, disc=f"is{cc}_{fname}",
            )

        if f.type == FieldProto.TYPE_MESSAGE:
            entry = g.object_named(f.type_name)
            if isinstance(entry, MessageDescriptor) and entry.is_map_entry:
                _apply_map_entry(g, fl, entry)

        if in_oneof(f):
            fl.oneof_type = _oneof_type_name(message, f"{cc}_{name}")
            layout.oneofs_by_index[f.oneof_index].members.append(fl)
        layout.fields.append(fl)
    return layout


def _apply_map_entry(g: FileGenerator, fl: FieldLayout, entry: MessageDescriptor) -> None:
    key_field, val_field = entry.proto.field[0], entry.proto.field[1]
    key_type, key_wire = go_type(g, entry, key_field)
    val_type, val_wire = go_type(g, entry, val_field)
    key_tag = go_tag(g, entry, key_field, key_wire)
    val_tag = go_tag(g, entry, val_field, val_wire)

    # Only message values keep their pointer. Message and enum values are
    # the only types in a map that may come from another package.
    key_type = key_type.lstrip("*")
    if val_field.type == FieldProto.TYPE_MESSAGE:
        g.record_type_use(val_field.type_name)
    else:
        if val_field.type == FieldProto.TYPE_ENUM:
            g.record_type_use(val_field.type_name)
        if val_type.startswith("*"):
            val_type = val_type[1:]

    fl.typ = f"map[{key_type}]{val_type}"
    fl.map_key = key_type
    fl.map_value = val_field
    fl.tag += f" protobuf_key:{key_tag} protobuf_val:{val_tag}"


def _oneof_type_name(message: MessageDescriptor, tname: str) -> str:
    """Wrapper type name for a oneof member, clear of nested type names."""
    taken = {camel_case_slice(d.type_name()) for d in message.nested}
    taken.update(camel_case_slice(e.type_name()) for e in message.enums)
    while tname in taken:
        tname += "_"
    return tname


def generate_message(g: FileGenerator, message: MessageDescriptor) -> None:
    layout = build_layout(g, message)
    cc = layout.cc_type_name

    _generate_struct(g, layout)
    has_extensions, is_message_set = _generate_methods(g, layout)
    def_names = _generate_default_constants(g, layout)
    g.p()

    if layout.oneofs:
        _generate_oneof_types(g, layout)
    getters = _generate_getters(g, layout, def_names)

    if not message.group:
        g.file.add_export(message, MessageSymbol(
            sym=cc,
            has_extensions=has_extensions,
            is_message_set=is_message_set,
            has_oneof=bool(layout.oneofs),
            getters=getters,
        ))

    if layout.oneofs:
        generate_oneof_funcs(g, layout)

    for ext in message.extensions:
        generate_extension(g, ext)

    full_name = ".".join(message.type_name())
    if g.file.package:
        full_name = g.file.package + "." + full_name
    g.add_init(f"{g.pkg('proto')}.RegisterType((*{cc})(nil), {go_quote(full_name)})")


def _struct_tag(tag: str) -> str:
    # A raw string literal cannot hold a backtick.
    if "`" in tag:
        return go_quote(tag)
    return "`" + tag + "`"


def _generate_struct(g: FileGenerator, layout: MessageLayout) -> None:
    message = layout.message
    g.print_comments(message.path)
    g.p("type ", layout.cc_type_name, " struct {")
    with g.indented():
        for fl in layout.fields:
            if in_oneof(fl.proto):
                oneof = layout.oneofs_by_index[fl.proto.oneof_index]
                if oneof.members[0] is fl:
                    _generate_union_member(g, layout, oneof)
                continue
            g.print_comments(f"{message.path},{MESSAGE_FIELD_PATH},{fl.index}")
            g.p(fl.name, "\t", fl.typ, "\t", _struct_tag(fl.tag))
            g.record_type_use(fl.proto.type_name)
        if message.proto.extension_range:
            g.p(g.pkg("proto"), '.XXX_InternalExtensions `json:"-"`')
        if not message.proto3:
            g.p('XXX_unrecognized\t[]byte `json:"-"`')
    g.p("}")


def _generate_union_member(g: FileGenerator, layout: MessageLayout, oneof: OneofLayout) -> None:
    path = f"{layout.message.path},{MESSAGE_ONEOF_PATH},{oneof.index}"
    if g.print_comments(path):
        g.p("//")
    g.p("// Types that are valid to be assigned to ", oneof.field_name, ":")
    for member in oneof.members:
        g.p("//\t*", member.oneof_type)
    g.p(oneof.field_name, " ", oneof.disc, ' `protobuf_oneof:"', oneof.decl.name, '"`')


def _generate_methods(g: FileGenerator, layout: MessageLayout) -> Tuple[bool, bool]:
    message = layout.message
    cc = layout.cc_type_name
    proto = g.pkg("proto")

    g.p("func (m *", cc, ") Reset() { *m = ", cc, "{} }")
    g.p("func (m *", cc, ") String() string { return ", proto, ".CompactTextString(m) }")
    g.p("func (*", cc, ") ProtoMessage() {}")
    indexes = ", ".join(str(i) for i in message.index_path())
    g.p("func (*", cc, ") Descriptor() ([]byte, []int) { return ", g.file.var_name, ", []int{", indexes, "} }")
    if message.file.package == "google.protobuf" and message.name in WELL_KNOWN_TYPES:
        g.p("func (*", cc, ") XXX_WellKnownType() string { return ", go_quote(message.name), " }")

    if not message.proto.extension_range:
        return False, False

    # message_set_wire_format is only meaningful with extension ranges.
    is_message_set = message.proto.options.message_set_wire_format
    if is_message_set:
        g.p()
        for method, sig, call in (
            ("Marshal", "() ([]byte, error)", "MarshalMessageSet(&m.XXX_InternalExtensions)"),
            ("Unmarshal", "(buf []byte) error", "UnmarshalMessageSet(buf, &m.XXX_InternalExtensions)"),
            ("MarshalJSON", "() ([]byte, error)", "MarshalMessageSetJSON(&m.XXX_InternalExtensions)"),
            ("UnmarshalJSON", "(buf []byte) error", "UnmarshalMessageSetJSON(buf, &m.XXX_InternalExtensions)"),
        ):
            g.p("func (m *", cc, ") ", method, sig, " {")
            with g.indented():
                g.p("return ", proto, ".", call)
            g.p("}")
        g.p("// ensure ", cc, " satisfies proto.Marshaler and proto.Unmarshaler")
        g.p("var _ ", proto, ".Marshaler = (*", cc, ")(nil)")
        g.p("var _ ", proto, ".Unmarshaler = (*", cc, ")(nil)")

    g.p()
    g.p("var extRange_", cc, " = []", proto, ".ExtensionRange{")
    with g.indented():
        for r in message.proto.extension_range:
            # Inclusive on both ends.
            g.p("{", r.start, ", ", r.end - 1, "},")
    g.p("}")
    g.p("func (*", cc, ") ExtensionRangeArray() []", proto, ".ExtensionRange {")
    with g.indented():
        g.p("return extRange_", cc)
    g.p("}")
    return True, is_message_set


def _generate_default_constants(g: FileGenerator, layout: MessageLayout) -> Dict[int, str]:
    def_names: Dict[int, str] = {}
    for fl in layout.fields:
        constant = default_constant(g, layout.message, fl.proto)
        if constant is None:
            continue
        kind, typ, value = constant
        name = f"Default_{layout.cc_type_name}_{camel_case(fl.proto.name)}"
        g.p(kind, " ", name, " ", typ, " = ", value)
        g.file.add_export(layout.message, ConstOrVarSymbol(name, kind))
        def_names[fl.index] = name
    return def_names


def _generate_oneof_types(g: FileGenerator, layout: MessageLayout) -> None:
    # Named interfaces rather than anonymous ones, one per oneof.
    for oneof in layout.oneofs:
        g.p("type ", oneof.disc, " interface { ", oneof.disc, "() }")
    g.p()
    for fl in layout.oneof_members():
        tag = "protobuf:" + go_tag(g, layout.message, fl.proto, fl.wire)
        g.p("type ", fl.oneof_type, " struct{ ", fl.name, " ", fl.typ, " ", _struct_tag(tag), " }")
        g.record_type_use(fl.proto.type_name)
    g.p()
    for fl in layout.oneof_members():
        disc = layout.oneofs_by_index[fl.proto.oneof_index].disc
        g.p("func (*", fl.oneof_type, ") ", disc, "() {}")
    g.p()
    for oneof in layout.oneofs:
        g.p("func (m *", layout.cc_type_name, ") Get", oneof.field_name, "() ", oneof.disc, " {")
        with g.indented():
            g.p("if m != nil {")
            with g.indented():
                g.p("return m.", oneof.field_name)
            g.p("}")
            g.p("return nil")
        g.p("}")
    g.p()


def _getter_symbol(fl: FieldLayout, typename: str) -> GetterSymbol:
    f = fl.proto
    if fl.map_value is not None:
        value = fl.map_value
        if value.type not in (FieldProto.TYPE_MESSAGE, FieldProto.TYPE_ENUM):
            return GetterSymbol(name=fl.getter, typ=typename)
        return GetterSymbol(
            name=fl.getter,
            typ=typename,
            type_name=value.type_name,
            gen_type=True,
            star=value.type == FieldProto.TYPE_MESSAGE,
            map_key=fl.map_key,
        )
    if f.type in (FieldProto.TYPE_MESSAGE, FieldProto.TYPE_ENUM):
        return GetterSymbol(
            name=fl.getter,
            typ=typename,
            type_name=f.type_name,
            gen_type=True,
            repeated=is_repeated(f),
            star=f.type == FieldProto.TYPE_MESSAGE,
        )
    return GetterSymbol(name=fl.getter, typ=typename)


def _generate_getters(g: FileGenerator, layout: MessageLayout, def_names: Dict[int, str]) -> List[GetterSymbol]:
    message = layout.message
    getters: List[GetterSymbol] = []
    for fl in layout.fields:
        f = fl.proto
        oneof = in_oneof(f)
        typename = fl.typ
        star = ""
        if needs_star(f.type) and typename.startswith("*"):
            typename = typename[1:]
            star = "*"

        # Groups are never forwarded through public imports.
        if f.type != FieldProto.TYPE_GROUP:
            getters.append(_getter_symbol(fl, typename))

        default = def_names.get(fl.index)
        type_default_is_nil = (
            (f.type == FieldProto.TYPE_BYTES and default is None)
            or f.type in (FieldProto.TYPE_GROUP, FieldProto.TYPE_MESSAGE)
            or is_repeated(f)
        )

        g.p("func (m *", layout.cc_type_name, ") ", fl.getter, "() ", typename, " {")
        with g.indented():
            if type_default_is_nil and not oneof:
                g.p("if m != nil {")
                with g.indented():
                    g.p("return m.", fl.name)
                g.p("}")
                g.p("return nil")
            else:
                if oneof:
                    union = layout.oneofs_by_index[f.oneof_index].field_name
                    g.p("if x, ok := m.Get", union, "().(*", fl.oneof_type, "); ok {")
                    with g.indented():
                        g.p("return x.", fl.name)
                    g.p("}")
                else:
                    if message.proto3:
                        g.p("if m != nil {")
                    else:
                        g.p("if m != nil && m.", fl.name, " != nil {")
                    with g.indented():
                        g.p("return ", star, "m.", fl.name)
                    g.p("}")
                _generate_zero_return(g, f, default)
        g.p("}")
        g.p()
    return getters


def _generate_zero_return(g: FileGenerator, f: FieldProto, default: Optional[str]) -> None:
    if default is not None:
        if f.type == FieldProto.TYPE_BYTES:
            # The default is a shared []byte var; never hand it out.
            g.p("return append([]byte(nil), ", default, "...)")
        else:
            g.p("return ", default)
        return

    if f.type == FieldProto.TYPE_BOOL:
        g.p("return false")
    elif f.type == FieldProto.TYPE_STRING:
        g.p('return ""')
    elif f.type in (FieldProto.TYPE_GROUP, FieldProto.TYPE_MESSAGE, FieldProto.TYPE_BYTES):
        # Only reachable for oneof members.
        g.p("return nil")
    elif f.type == FieldProto.TYPE_ENUM:
        # An enum defaults to its first declared value, which need not be 0.
        obj = g.object_named(f.type_name)
        enum = underlying(obj)
        if not isinstance(enum, EnumDescriptor):
            logger.warning("don't know how to generate getter for %s", f.name)
            g.p("return 0")
        elif not enum.proto.value:
            logger.warning("enum %s has no values; %s defaults to 0", ".".join(enum.type_name()), f.name)
            g.p("return 0 // empty enum")
        else:
            g.p("return ", g.default_package_name(obj), enum.prefix(), enum.proto.value[0].name)
    else:
        g.p("return 0")
