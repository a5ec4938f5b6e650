from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Tuple

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.symbols import oneof_signatures

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator
    from protoc_gen_cgi.generator.message_emitter import FieldLayout, MessageLayout

FieldProto = descriptor_pb2.FieldDescriptorProto

# Marshaling per field kind: wire type constant, encoder call opening and
# closing around the value. "{math}" is the math package name.
ENCODERS: Dict[int, Tuple[str, str, str]] = {
    FieldProto.TYPE_DOUBLE: ("WireFixed64", "b.EncodeFixed64({math}.Float64bits(", "))"),
    FieldProto.TYPE_FLOAT: ("WireFixed32", "b.EncodeFixed32(uint64({math}.Float32bits(", ")))"),
    FieldProto.TYPE_INT64: ("WireVarint", "b.EncodeVarint(uint64(", "))"),
    FieldProto.TYPE_UINT64: ("WireVarint", "b.EncodeVarint(uint64(", "))"),
    FieldProto.TYPE_INT32: ("WireVarint", "b.EncodeVarint(uint64(", "))"),
    FieldProto.TYPE_UINT32: ("WireVarint", "b.EncodeVarint(uint64(", "))"),
    FieldProto.TYPE_ENUM: ("WireVarint", "b.EncodeVarint(uint64(", "))"),
    FieldProto.TYPE_FIXED64: ("WireFixed64", "b.EncodeFixed64(uint64(", "))"),
    FieldProto.TYPE_SFIXED64: ("WireFixed64", "b.EncodeFixed64(uint64(", "))"),
    FieldProto.TYPE_FIXED32: ("WireFixed32", "b.EncodeFixed32(uint64(", "))"),
    FieldProto.TYPE_SFIXED32: ("WireFixed32", "b.EncodeFixed32(uint64(", "))"),
    FieldProto.TYPE_BOOL: ("WireVarint", "b.EncodeVarint(", ")"),
    FieldProto.TYPE_STRING: ("WireBytes", "b.EncodeStringBytes(", ")"),
    FieldProto.TYPE_GROUP: ("WireStartGroup", "b.Marshal(", ")"),
    FieldProto.TYPE_MESSAGE: ("WireBytes", "b.EncodeMessage(", ")"),
    FieldProto.TYPE_BYTES: ("WireBytes", "b.EncodeRawBytes(", ")"),
    FieldProto.TYPE_SINT32: ("WireVarint", "b.EncodeZigzag32(uint64(", "))"),
    FieldProto.TYPE_SINT64: ("WireVarint", "b.EncodeZigzag64(uint64(", "))"),
}

# Unmarshaling: decoder call, then up to two conversions applied inside out.
# "{enum}" is the Go type of the field.
DECODERS: Dict[int, Tuple[str, str, str]] = {
    FieldProto.TYPE_DOUBLE: ("b.DecodeFixed64()", "{math}.Float64frombits", ""),
    FieldProto.TYPE_FLOAT: ("b.DecodeFixed32()", "uint32", "{math}.Float32frombits"),
    FieldProto.TYPE_INT64: ("b.DecodeVarint()", "int64", ""),
    FieldProto.TYPE_UINT64: ("b.DecodeVarint()", "", ""),
    FieldProto.TYPE_INT32: ("b.DecodeVarint()", "int32", ""),
    FieldProto.TYPE_UINT32: ("b.DecodeVarint()", "uint32", ""),
    FieldProto.TYPE_ENUM: ("b.DecodeVarint()", "{enum}", ""),
    FieldProto.TYPE_FIXED64: ("b.DecodeFixed64()", "", ""),
    FieldProto.TYPE_FIXED32: ("b.DecodeFixed32()", "uint32", ""),
    FieldProto.TYPE_SFIXED32: ("b.DecodeFixed32()", "int32", ""),
    FieldProto.TYPE_SFIXED64: ("b.DecodeFixed64()", "int64", ""),
    FieldProto.TYPE_SINT32: ("b.DecodeZigzag32()", "int32", ""),
    FieldProto.TYPE_SINT64: ("b.DecodeZigzag64()", "int64", ""),
    FieldProto.TYPE_BOOL: ("b.DecodeVarint()", "", ""),
    FieldProto.TYPE_STRING: ("b.DecodeStringBytes()", "", ""),
    FieldProto.TYPE_BYTES: ("b.DecodeRawBytes(true)", "", ""),
    FieldProto.TYPE_GROUP: ("b.DecodeGroup(msg)", "", ""),
    FieldProto.TYPE_MESSAGE: ("b.DecodeMessage(msg)", "", ""),
}

# Sizing: wire type constant, varint-sized expression and fixed-size
# expression added after the key. "{val}" is the field value, "{proto}"
# the proto package name.
SIZERS: Dict[int, Tuple[str, str, str]] = {
    FieldProto.TYPE_DOUBLE: ("WireFixed64", "", "8"),
    FieldProto.TYPE_FLOAT: ("WireFixed32", "", "4"),
    FieldProto.TYPE_INT64: ("WireVarint", "{val}", ""),
    FieldProto.TYPE_UINT64: ("WireVarint", "{val}", ""),
    FieldProto.TYPE_INT32: ("WireVarint", "{val}", ""),
    FieldProto.TYPE_UINT32: ("WireVarint", "{val}", ""),
    FieldProto.TYPE_ENUM: ("WireVarint", "{val}", ""),
    FieldProto.TYPE_FIXED64: ("WireFixed64", "", "8"),
    FieldProto.TYPE_SFIXED64: ("WireFixed64", "", "8"),
    FieldProto.TYPE_FIXED32: ("WireFixed32", "", "4"),
    FieldProto.TYPE_SFIXED32: ("WireFixed32", "", "4"),
    FieldProto.TYPE_BOOL: ("WireVarint", "", "1"),
    FieldProto.TYPE_STRING: ("WireBytes", "len({val})", "len({val})"),
    FieldProto.TYPE_BYTES: ("WireBytes", "len({val})", "len({val})"),
    FieldProto.TYPE_GROUP: ("WireStartGroup", "", "{proto}.Size({val})"),
    FieldProto.TYPE_MESSAGE: ("WireBytes", "s", "s"),
    FieldProto.TYPE_SINT32: ("WireVarint", "(uint32({val}) << 1) ^ uint32((int32({val}) >> 31))", ""),
    FieldProto.TYPE_SINT64: ("WireVarint", "uint64({val} << 1) ^ uint64((int64({val}) >> 63))", ""),
}


def _lookup(table: Dict[int, Tuple[str, str, str]], fl: FieldLayout) -> Tuple[str, str, str]:
    try:
        return table[fl.proto.type]
    except KeyError:
        raise GeneratorError(
            f"unhandled oneof field type {FieldProto.Type.Name(fl.proto.type)}"
        ) from None


def generate_oneof_funcs(g: FileGenerator, layout: MessageLayout) -> None:
    """XXX_OneofFuncs plus the marshaler, unmarshaler and sizer it returns."""
    cc = layout.cc_type_name
    enc = f"_{cc}_OneofMarshaler"
    dec = f"_{cc}_OneofUnmarshaler"
    size = f"_{cc}_OneofSizer"
    enc_sig, dec_sig, size_sig = oneof_signatures(g.pkg("proto"))
    members = layout.oneof_members()

    g.p("// XXX_OneofFuncs is for the internal use of the proto package.")
    g.p("func (*", cc, ") XXX_OneofFuncs() (func", enc_sig, ", func", dec_sig,
        ", func", size_sig, ", []interface{}) {")
    with g.indented():
        g.p("return ", enc, ", ", dec, ", ", size, ", []interface{}{")
        with g.indented():
            for fl in members:
                g.p("(*", fl.oneof_type, ")(nil),")
        g.p("}")
    g.p("}")
    g.p()

    _generate_marshaler(g, layout, enc, enc_sig)
    _generate_unmarshaler(g, layout, dec, dec_sig, members)
    _generate_sizer(g, layout, size, size_sig)


def _generate_marshaler(g: FileGenerator, layout: MessageLayout, name: str, sig: str) -> None:
    proto, math, fmt = g.pkg("proto"), g.pkg("math"), g.pkg("fmt")
    g.p("func ", name, sig, " {")
    with g.indented():
        g.p("m := msg.(*", layout.cc_type_name, ")")
        for oneof in layout.oneofs:
            g.p("// ", oneof.decl.name)
            g.p("switch x := m.", oneof.field_name, ".(type) {")
            for fl in oneof.members:
                wire, pre, post = _lookup(ENCODERS, fl)
                pre = pre.format(math=math)
                val = "x." + fl.name
                g.p("case *", fl.oneof_type, ":")
                with g.indented():
                    if fl.proto.type == FieldProto.TYPE_BOOL:
                        g.p("t := uint64(0)")
                        g.p("if ", val, " {")
                        with g.indented():
                            g.p("t = 1")
                        g.p("}")
                        val = "t"
                    g.p("b.EncodeVarint(", fl.proto.number, "<<3|", proto, ".", wire, ")")
                    if fl.proto.type in (FieldProto.TYPE_MESSAGE, FieldProto.TYPE_GROUP):
                        g.p("if err := ", pre, val, post, "; err != nil {")
                        with g.indented():
                            g.p("return err")
                        g.p("}")
                    else:
                        g.p(pre, val, post)
                    if fl.proto.type == FieldProto.TYPE_GROUP:
                        g.p("b.EncodeVarint(", fl.proto.number, "<<3|", proto, ".WireEndGroup)")
            g.p("case nil:")
            g.p("default:")
            with g.indented():
                g.p("return ", fmt, ".Errorf(", f'"{layout.cc_type_name}.{oneof.field_name} has unexpected type %T"', ", x)")
            g.p("}")
        g.p("return nil")
    g.p("}")
    g.p()


def _generate_unmarshaler(g: FileGenerator, layout: MessageLayout, name: str, sig: str,
                          members: List[FieldLayout]) -> None:
    proto, math = g.pkg("proto"), g.pkg("math")
    g.p("func ", name, sig, " {")
    with g.indented():
        g.p("m := msg.(*", layout.cc_type_name, ")")
        g.p("switch tag {")
        for fl in members:
            oneof = layout.oneofs_by_index[fl.proto.oneof_index]
            wire = _lookup(ENCODERS, fl)[0]
            dec, cast, cast2 = _lookup(DECODERS, fl)
            g.p("case ", fl.proto.number, ": // ", oneof.decl.name, ".", fl.proto.name)
            with g.indented():
                g.p("if wire != ", proto, ".", wire, " {")
                with g.indented():
                    g.p("return true, ", proto, ".ErrInternalBadWireType")
                g.p("}")
                lhs = "x, err"
                if fl.proto.type in (FieldProto.TYPE_MESSAGE, FieldProto.TYPE_GROUP):
                    g.p("msg := new(", fl.typ[1:], ")")
                    lhs = "err"
                g.p(lhs, " := ", dec)
                val = "x"
                for conv in (cast, cast2):
                    if conv:
                        val = conv.format(math=math, enum=fl.typ) + "(" + val + ")"
                if fl.proto.type == FieldProto.TYPE_BOOL:
                    val += " != 0"
                elif fl.proto.type in (FieldProto.TYPE_MESSAGE, FieldProto.TYPE_GROUP):
                    val = "msg"
                g.p("m.", oneof.field_name, " = &", fl.oneof_type, "{", val, "}")
                g.p("return true, err")
        g.p("default:")
        with g.indented():
            g.p("return false, nil")
        g.p("}")
    g.p("}")
    g.p()


def _generate_sizer(g: FileGenerator, layout: MessageLayout, name: str, sig: str) -> None:
    proto = g.pkg("proto")
    fmt = g.pkg("fmt")
    g.p("func ", name, sig, " {")
    with g.indented():
        g.p("m := msg.(*", layout.cc_type_name, ")")
        for oneof in layout.oneofs:
            g.p("// ", oneof.decl.name)
            g.p("switch x := m.", oneof.field_name, ".(type) {")
            for fl in oneof.members:
                wire, varint, fixed = _lookup(SIZERS, fl)
                val = "x." + fl.name
                g.p("case *", fl.oneof_type, ":")
                with g.indented():
                    if fl.proto.type == FieldProto.TYPE_MESSAGE:
                        g.p("s := ", proto, ".Size(", val, ")")
                    g.p("n += ", proto, ".SizeVarint(", fl.proto.number, "<<3|", proto, ".", wire, ")")
                    if varint:
                        g.p("n += ", proto, ".SizeVarint(uint64(", varint.format(val=val), "))")
                    if fixed:
                        g.p("n += ", fixed.format(val=val, proto=proto))
                    if fl.proto.type == FieldProto.TYPE_GROUP:
                        g.p("n += ", proto, ".SizeVarint(", fl.proto.number, "<<3|", proto, ".WireEndGroup)")
            g.p("case nil:")
            g.p("default:")
            with g.indented():
                g.p("panic(", fmt, '.Sprintf("proto: unexpected type %T in oneof", x))')
            g.p("}")
        g.p("return n")
    g.p("}")
    g.p()
