import pytest

from builders import FieldProto, REPEATED, make_enum, make_field, make_file, make_message, make_request
from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.file_generator import FileGenerator
from protoc_gen_cgi.generator.type_mapper import SCALAR_TYPES, default_constant, go_tag, go_type
from protoc_gen_cgi.session import CompilationSession


def _proto2_fields():
    return [
        make_field("count", 2, FieldProto.TYPE_INT32, default="7"),
        make_field("vals", 1, FieldProto.TYPE_INT32, label=REPEATED),
        make_field("color", 3, FieldProto.TYPE_ENUM, type_name=".pkg.Color", default="RED"),
        make_field("foo_bar", 4, FieldProto.TYPE_STRING, json_name="fooBar"),
        make_field("mygroup", 5, FieldProto.TYPE_GROUP, type_name=".pkg.Msg.MyGroup"),
        make_field("child", 6, FieldProto.TYPE_MESSAGE, type_name=".pkg.Msg"),
        make_field("packed_vals", 7, FieldProto.TYPE_INT32, label=REPEATED, packed=True),
        make_field("flag", 8, FieldProto.TYPE_BOOL, default="true"),
        make_field("data", 9, FieldProto.TYPE_BYTES, default="ab"),
        make_field("ratio", 10, FieldProto.TYPE_FLOAT, default="inf"),
        make_field("big", 11, FieldProto.TYPE_DOUBLE, default="nan"),
        make_field("empty", 12, FieldProto.TYPE_STRING, default=""),
        make_field("greeting", 13, FieldProto.TYPE_STRING, default="hi"),
        make_field("low", 14, FieldProto.TYPE_DOUBLE, default="-inf"),
    ]


def _proto3_fields():
    return [
        make_field("vals", 1, FieldProto.TYPE_INT32, label=REPEATED),
        make_field("data", 2, FieldProto.TYPE_BYTES),
        make_field("n", 3, FieldProto.TYPE_INT32),
        make_field("names", 4, FieldProto.TYPE_STRING, label=REPEATED),
        make_field("unpacked", 5, FieldProto.TYPE_INT32, label=REPEATED, packed=False),
    ]


def _make_generator(proto3=False):
    if proto3:
        proto = make_file("p3.proto", package="p3", syntax="proto3",
                          messages=[make_message("Msg", fields=_proto3_fields())])
    else:
        msg = make_message("Msg", fields=_proto2_fields(), nested=[
            make_message("MyGroup", fields=[make_field("a", 1, FieldProto.TYPE_INT32)]),
        ])
        proto = make_file("t.proto", package="pkg", messages=[msg],
                          enums=[make_enum("Color", [("RED", 1), ("GREEN", 2)])])
    session = CompilationSession.from_request(make_request([proto]))
    fd = session.gen_files[0]
    return FileGenerator(session, fd), fd.messages[0]


def _field(message, name):
    return next(f for f in message.proto.field if f.name == name)


class TestGoType:
    def test_proto2_scalars_are_pointers(self):
        g, msg = _make_generator()
        assert go_type(g, msg, _field(msg, "count")) == ("*int32", "varint")
        assert go_type(g, msg, _field(msg, "foo_bar")) == ("*string", "bytes")

    def test_repeated(self):
        g, msg = _make_generator()
        assert go_type(g, msg, _field(msg, "vals")) == ("[]int32", "varint")

    def test_bytes_are_never_pointers(self):
        g, msg = _make_generator()
        assert go_type(g, msg, _field(msg, "data")) == ("[]byte", "bytes")

    def test_named_types(self):
        g, msg = _make_generator()
        assert go_type(g, msg, _field(msg, "color")) == ("*Color", "varint")
        assert go_type(g, msg, _field(msg, "mygroup")) == ("*Msg_MyGroup", "group")
        assert go_type(g, msg, _field(msg, "child")) == ("*Msg", "bytes")

    def test_proto3_scalars_are_values(self):
        g, msg = _make_generator(proto3=True)
        assert go_type(g, msg, _field(msg, "n")) == ("int32", "varint")
        assert go_type(g, msg, _field(msg, "data")) == ("[]byte", "bytes")

    def test_file_scope_extension_has_no_message(self):
        g, msg = _make_generator(proto3=True)
        assert go_type(g, None, _field(msg, "n")) == ("*int32", "varint")

    def test_unknown_kind_is_fatal(self, monkeypatch):
        g, msg = _make_generator()
        monkeypatch.delitem(SCALAR_TYPES, FieldProto.TYPE_INT32)
        with pytest.raises(GeneratorError, match="unknown type for count"):
            go_type(g, msg, _field(msg, "count"))


class TestGoTag:
    def test_default_and_cardinality(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "count"), "varint") == '"varint,2,opt,name=count,def=7"'
        assert go_tag(g, msg, _field(msg, "vals"), "varint") == '"varint,1,rep,name=vals"'

    def test_explicit_packed(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "packed_vals"), "varint") == \
            '"varint,7,rep,packed,name=packed_vals"'

    def test_enum_uses_proto_package_and_number_default(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "color"), "varint") == \
            '"varint,3,opt,name=color,enum=pkg.Color,def=1"'

    def test_json_name(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "foo_bar"), "bytes") == \
            '"bytes,4,opt,name=foo_bar,json=fooBar"'

    def test_group_uses_type_name(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "mygroup"), "group") == '"group,5,opt,name=MyGroup"'

    def test_bool_default_is_numeric(self):
        g, msg = _make_generator()
        assert go_tag(g, msg, _field(msg, "flag"), "varint") == '"varint,8,opt,name=flag,def=1"'

    def test_proto3_packs_repeated_scalars(self):
        g, msg = _make_generator(proto3=True)
        assert go_tag(g, msg, _field(msg, "vals"), "varint") == '"varint,1,rep,packed,name=vals"'
        assert go_tag(g, msg, _field(msg, "names"), "bytes") == '"bytes,4,rep,name=names"'
        assert go_tag(g, msg, _field(msg, "unpacked"), "varint") == '"varint,5,rep,name=unpacked"'

    def test_proto3_bytes_marker(self):
        g, msg = _make_generator(proto3=True)
        assert go_tag(g, msg, _field(msg, "data"), "bytes") == '"bytes,2,opt,name=data,proto3"'

    def test_same_input_same_tag(self):
        g, msg = _make_generator()
        field = _field(msg, "color")
        before = field.SerializeToString()
        assert go_tag(g, msg, field, "varint") == go_tag(g, msg, field, "varint")
        assert field.SerializeToString() == before


class TestDefaultConstant:
    def test_numeric_and_bool(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "count")) == ("const", "int32", "7")
        assert default_constant(g, msg, _field(msg, "flag")) == ("const", "bool", "true")

    def test_string_is_quoted(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "greeting")) == ("const", "string", '"hi"')

    def test_bytes_are_a_var(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "data")) == ("var", "[]byte", '[]byte("ab")')

    def test_non_finite_floats_use_math(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "ratio")) == \
            ("var", "float32", "float32(math.Inf(1))")
        assert default_constant(g, msg, _field(msg, "big")) == ("var", "float64", "math.NaN()")
        assert default_constant(g, msg, _field(msg, "low")) == ("var", "float64", "math.Inf(-1)")

    def test_enum_default_is_prefixed_constant(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "color")) == ("const", "Color", "Color_RED")

    def test_no_default(self):
        g, msg = _make_generator()
        assert default_constant(g, msg, _field(msg, "foo_bar")) is None
        assert default_constant(g, msg, _field(msg, "empty")) is None
