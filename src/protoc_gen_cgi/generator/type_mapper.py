from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Tuple

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import EnumDescriptor, ImportedDescriptor, MessageDescriptor, SchemaObject
from protoc_gen_cgi.naming import camel_case_slice, go_quote

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator

logger = logging.getLogger(__name__)

FieldProto = descriptor_pb2.FieldDescriptorProto

# Go type and wire encoding for every kind that does not name another type.
SCALAR_TYPES = {
    FieldProto.TYPE_DOUBLE: ("float64", "fixed64"),
    FieldProto.TYPE_FLOAT: ("float32", "fixed32"),
    FieldProto.TYPE_INT64: ("int64", "varint"),
    FieldProto.TYPE_UINT64: ("uint64", "varint"),
    FieldProto.TYPE_INT32: ("int32", "varint"),
    FieldProto.TYPE_UINT32: ("uint32", "varint"),
    FieldProto.TYPE_FIXED64: ("uint64", "fixed64"),
    FieldProto.TYPE_FIXED32: ("uint32", "fixed32"),
    FieldProto.TYPE_BOOL: ("bool", "varint"),
    FieldProto.TYPE_STRING: ("string", "bytes"),
    FieldProto.TYPE_BYTES: ("[]byte", "bytes"),
    FieldProto.TYPE_SFIXED32: ("int32", "fixed32"),
    FieldProto.TYPE_SFIXED64: ("int64", "fixed64"),
    FieldProto.TYPE_SINT32: ("int32", "zigzag32"),
    FieldProto.TYPE_SINT64: ("int64", "zigzag64"),
}

# Kinds held by reference even when the field is optional.
_NO_STAR = (FieldProto.TYPE_GROUP, FieldProto.TYPE_MESSAGE, FieldProto.TYPE_BYTES)

_SCALAR_NUMERIC = frozenset(
    t for t in SCALAR_TYPES if t not in (FieldProto.TYPE_STRING, FieldProto.TYPE_BYTES)
) | {FieldProto.TYPE_ENUM}


def is_optional(field: FieldProto) -> bool:
    return field.HasField("label") and field.label == FieldProto.LABEL_OPTIONAL


def is_required(field: FieldProto) -> bool:
    return field.HasField("label") and field.label == FieldProto.LABEL_REQUIRED


def is_repeated(field: FieldProto) -> bool:
    return field.HasField("label") and field.label == FieldProto.LABEL_REPEATED


def is_scalar(field: FieldProto) -> bool:
    """Numeric, bool or enum: the kinds that may use packed encoding."""
    return field.HasField("type") and field.type in _SCALAR_NUMERIC


def in_oneof(field: FieldProto) -> bool:
    return field.HasField("oneof_index")


def needs_star(field_type: int) -> bool:
    return field_type not in _NO_STAR


def go_type(g: FileGenerator, message: Optional[MessageDescriptor], field: FieldProto) -> Tuple[str, str]:
    """Go type expression and wire encoding for field declared in message.

    message is None for extensions declared at file scope.
    """
    if field.type in SCALAR_TYPES:
        typ, wire = SCALAR_TYPES[field.type]
    elif field.type == FieldProto.TYPE_GROUP:
        typ, wire = "*" + g.type_name(g.object_named(field.type_name)), "group"
    elif field.type == FieldProto.TYPE_MESSAGE:
        typ, wire = "*" + g.type_name(g.object_named(field.type_name)), "bytes"
    elif field.type == FieldProto.TYPE_ENUM:
        typ, wire = g.type_name(g.object_named(field.type_name)), "varint"
    else:
        raise GeneratorError(f"unknown type for {field.name}")

    if is_repeated(field):
        return "[]" + typ, wire
    if message is not None and (message.proto3 or in_oneof(field)):
        return typ, wire
    if needs_star(field.type):
        typ = "*" + typ
    return typ, wire


def underlying(obj: SchemaObject) -> SchemaObject:
    """The aliased object behind a public-import alias, or obj itself."""
    if isinstance(obj, ImportedDescriptor):
        return obj.target
    return obj


def _enum_for(g: FileGenerator, field: FieldProto) -> EnumDescriptor:
    obj = underlying(g.object_named(field.type_name))
    if not isinstance(obj, EnumDescriptor):
        raise GeneratorError(f"unknown enum type {camel_case_slice(obj.type_name())}")
    return obj


def tag_default(g: FileGenerator, field: FieldProto) -> str:
    """Default literal as it appears after def= in the struct tag."""
    value = field.default_value
    if field.type == FieldProto.TYPE_BOOL:
        return "1" if value == "true" else "0"
    if field.type == FieldProto.TYPE_ENUM:
        return _enum_for(g, field).integer_value_as_string(value)
    # Strings and bytes are quoted along with the whole tag.
    return value


def go_tag(g: FileGenerator, message: MessageDescriptor, field: FieldProto, wire: str) -> str:
    """Quoted protobuf struct tag, e.g. "varint,2,opt,name=count,def=7"."""
    if is_optional(field):
        cardinality = "opt"
    elif is_required(field):
        cardinality = "req"
    elif is_repeated(field):
        cardinality = "rep"
    else:
        cardinality = ""

    default = ""
    if field.HasField("default_value"):
        default = ",def=" + tag_default(g, field)

    enum = ""
    if field.type == FieldProto.TYPE_ENUM:
        # The proto package, not the Go package, names the enum here.
        obj = _enum_for(g, field)
        enum = ",enum="
        if obj.file.package:
            enum += obj.file.package + "."
        enum += camel_case_slice(obj.type_name())

    packed = ""
    explicit_packed = field.HasField("options") and field.options.HasField("packed")
    if explicit_packed and field.options.packed:
        packed = ",packed"
    elif message.proto3 and not explicit_packed and is_repeated(field) and is_scalar(field):
        # proto3 packs repeated numeric scalars unless told otherwise.
        packed = ",packed"

    name = field.name
    if field.type == FieldProto.TYPE_GROUP:
        # Groups keep the capitalization of their type name.
        name = field.type_name.rsplit(".", 1)[-1]
    if field.json_name and field.json_name != name:
        name += ",json=" + field.json_name
    name = ",name=" + name
    if message.proto3 and field.type == FieldProto.TYPE_BYTES:
        name += ",proto3"

    oneof = ",oneof" if in_oneof(field) else ""
    return go_quote(
        f"{wire},{field.number},{cardinality}{packed}{name}{enum}{oneof}{default}"
    )


def default_constant(g: FileGenerator, message: MessageDescriptor, field: FieldProto) -> Optional[Tuple[str, str, str]]:
    """(kind, type, value) for the Default_ declaration of field, if any.

    kind is "const" or "var": byte slices and the non-finite floats can only
    be declared as variables.
    """
    value = field.default_value
    if not value:
        return None
    typ, _ = go_type(g, message, field)
    if typ.startswith("*"):
        typ = typ[1:]

    kind = "const"
    if typ == "bool":
        pass
    elif typ == "string":
        value = go_quote(value)
    elif typ == "[]byte":
        value = "[]byte(" + go_quote(value) + ")"
        kind = "var"
    elif value in ("inf", "-inf", "nan"):
        math = g.pkg("math")
        value = {
            "inf": f"{math}.Inf(1)",
            "-inf": f"{math}.Inf(-1)",
            "nan": f"{math}.NaN()",
        }[value]
        if field.type == FieldProto.TYPE_FLOAT:
            value = f"float32({value})"
        kind = "var"
    elif field.type == FieldProto.TYPE_ENUM:
        obj = g.object_named(field.type_name)
        enum = underlying(obj)
        if not isinstance(enum, EnumDescriptor):
            logger.warning("don't know how to generate constant for %s", field.name)
            return None
        value = g.default_package_name(obj) + enum.prefix() + value
    return kind, typ, value
