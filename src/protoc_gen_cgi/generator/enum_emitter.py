from __future__ import annotations

from typing import TYPE_CHECKING, Set

from protoc_gen_cgi.generator.symbols import ConstOrVarSymbol, EnumSymbol
from protoc_gen_cgi.models import ENUM_VALUE_PATH, EnumDescriptor
from protoc_gen_cgi.naming import camel_case_slice, go_quote

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator


def generate_enum(g: FileGenerator, enum: EnumDescriptor) -> None:
    cc_type_name = camel_case_slice(enum.type_name())
    prefix = enum.prefix()
    proto = g.pkg("proto")

    g.print_comments(enum.path)
    g.p("type ", cc_type_name, " int32")
    g.file.add_export(enum, EnumSymbol(cc_type_name, enum.proto3))

    g.p("const (")
    with g.indented():
        for i, value in enumerate(enum.proto.value):
            g.print_comments(f"{enum.path},{ENUM_VALUE_PATH},{i}")
            name = prefix + value.name
            g.p(name, " ", cc_type_name, " = ", value.number)
            g.file.add_export(enum, ConstOrVarSymbol(name, "const", cc_type_name))
    g.p(")")

    g.p("var ", cc_type_name, "_name = map[int32]string{")
    with g.indented():
        seen: Set[int] = set()
        for value in enum.proto.value:
            # Aliased numbers would be duplicate map keys.
            duplicate = "// Duplicate value: " if value.number in seen else ""
            g.p(duplicate, value.number, ": ", go_quote(value.name), ",")
            seen.add(value.number)
    g.p("}")

    g.p("var ", cc_type_name, "_value = map[string]int32{")
    with g.indented():
        for value in enum.proto.value:
            g.p(go_quote(value.name), ": ", value.number, ",")
    g.p("}")

    if not enum.proto3:
        g.p("func (x ", cc_type_name, ") Enum() *", cc_type_name, " {")
        with g.indented():
            g.p("p := new(", cc_type_name, ")")
            g.p("*p = x")
            g.p("return p")
        g.p("}")

    g.p("func (x ", cc_type_name, ") String() string {")
    with g.indented():
        g.p("return ", proto, ".EnumName(", cc_type_name, "_name, int32(x))")
    g.p("}")

    if not enum.proto3:
        g.p("func (x *", cc_type_name, ") UnmarshalJSON(data []byte) error {")
        with g.indented():
            g.p("value, err := ", proto, ".UnmarshalJSONEnum(", cc_type_name, "_value, data, ",
                go_quote(cc_type_name), ")")
            g.p("if err != nil {")
            with g.indented():
                g.p("return err")
            g.p("}")
            g.p("*x = ", cc_type_name, "(value)")
            g.p("return nil")
        g.p("}")

    indexes = ", ".join(str(i) for i in enum.index_path())
    g.p("func (", cc_type_name, ") EnumDescriptor() ([]byte, []int) { return ",
        g.file.var_name, ", []int{", indexes, "} }")
    if enum.file.package == "google.protobuf" and enum.name == "NullValue":
        g.p("func (", cc_type_name, ") XXX_WellKnownType() string { return ",
            go_quote(enum.name), " }")
    g.p()


def generate_enum_registration(g: FileGenerator, enum: EnumDescriptor) -> None:
    # Registered under the proto package, never the Go one.
    pkg = enum.file.package + "." if enum.file.package else ""
    cc_type_name = camel_case_slice(enum.type_name())
    g.add_init(
        f"{g.pkg('proto')}.RegisterEnum({go_quote(pkg + cc_type_name)}, "
        f"{cc_type_name}_name, {cc_type_name}_value)"
    )
