from __future__ import annotations

from typing import TYPE_CHECKING

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.symbols import ConstOrVarSymbol
from protoc_gen_cgi.generator.type_mapper import go_tag, go_type, underlying
from protoc_gen_cgi.models import ExtensionDescriptor, MessageDescriptor
from protoc_gen_cgi.naming import go_quote

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator

MESSAGE_SET_TYPE = "*proto2_bridge.MessageSet"


def generate_extension(g: FileGenerator, ext: ExtensionDescriptor) -> None:
    cc_type_name = ext.desc_name()
    field = ext.proto

    ext_obj = g.object_named(field.extendee)
    # The tag needs the real message even if it arrived through a public import.
    ext_desc = underlying(ext_obj)
    if not isinstance(ext_desc, MessageDescriptor):
        raise GeneratorError(f"extendee {field.extendee} of {ext.name} is not a message")
    extended_type = "*" + g.type_name(ext_obj)
    field_type, wire = go_type(g, ext.parent, field)
    tag = go_tag(g, ext_desc, field, wire)
    g.record_type_use(field.extendee)
    if field.type_name:
        g.record_type_use(field.type_name)

    type_name = ext.type_name()
    # proto2 message sets: an extension of proto2_bridge.MessageSet named
    # "message_set_extension" is registered under its enclosing name.
    mset = False
    if extended_type == MESSAGE_SET_TYPE and type_name[-1] == "message_set_extension":
        type_name = type_name[:-1]
        mset = True

    # Text format wants the proto package exactly as declared.
    ext_name = ".".join(type_name)
    if g.file.package:
        ext_name = g.file.package + "." + ext_name

    g.p("var ", cc_type_name, " = &", g.pkg("proto"), ".ExtensionDesc{")
    with g.indented():
        g.p("ExtendedType: (", extended_type, ")(nil),")
        g.p("ExtensionType: (", field_type, ")(nil),")
        g.p("Field: ", field.number, ",")
        g.p("Name: ", go_quote(ext_name), ",")
        g.p("Tag: ", tag, ",")
        g.p("Filename: ", go_quote(g.file.name), ",")
    g.p("}")
    g.p()

    if mset:
        g.add_init(
            f"{g.pkg('proto')}.RegisterMessageSetType(({field_type})(nil), "
            f"{field.number}, {go_quote(ext_name)})"
        )
    g.file.add_export(ext, ConstOrVarSymbol(cc_type_name, "var"))


def generate_extension_registration(g: FileGenerator, ext: ExtensionDescriptor) -> None:
    g.add_init(f"{g.pkg('proto')}.RegisterExtension({ext.desc_name()})")
