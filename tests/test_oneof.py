import pytest

from builders import FieldProto, make_field, make_file, make_message, make_request
from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.file_generator import FileGenerator
from protoc_gen_cgi.generator.message_emitter import build_layout, generate_message
from protoc_gen_cgi.generator.oneof_emitter import ENCODERS, generate_oneof_funcs
from protoc_gen_cgi.session import CompilationSession


def _msg(nested=()):
    return make_message("Msg", oneofs=["choice"], nested=list(nested), fields=[
        make_field("num", 1, FieldProto.TYPE_INT32, oneof_index=0),
        make_field("text", 2, FieldProto.TYPE_STRING, oneof_index=0),
        make_field("sub", 3, FieldProto.TYPE_MESSAGE, type_name=".o.Sub", oneof_index=0),
        make_field("flag", 4, FieldProto.TYPE_BOOL, oneof_index=0),
        make_field("plain", 5, FieldProto.TYPE_INT32),
    ])


def _make_generator(msg=None):
    proto = make_file("o.proto", package="o", syntax="proto3",
                      messages=[msg or _msg(), make_message("Sub")])
    session = CompilationSession.from_request(make_request([proto]))
    fd = session.gen_files[0]
    return FileGenerator(session, fd), fd


def _generate(msg=None):
    g, fd = _make_generator(msg)
    generate_message(g, fd.messages[0])
    return g.out.text()


class TestOneofLayout:
    def test_names(self):
        g, fd = _make_generator()
        layout = build_layout(g, fd.messages[0])
        [oneof] = layout.oneofs
        assert oneof.field_name == "Choice"
        assert oneof.disc == "isMsg_Choice"
        assert [m.oneof_type for m in oneof.members] == ["Msg_Num", "Msg_Text", "Msg_Sub", "Msg_Flag"]
        assert [f.name for f in layout.oneof_members()] == ["Num", "Text", "Sub", "Flag"]

    def test_wrapper_name_avoids_nested_types(self):
        g, fd = _make_generator(_msg(nested=[make_message("Num")]))
        layout = build_layout(g, fd.messages[0])
        assert layout.oneofs[0].members[0].oneof_type == "Msg_Num_"


class TestOneofDeclarations:
    def test_union_member(self):
        text = _generate()
        assert (
            "\t// Types that are valid to be assigned to Choice:\n"
            "\t//\t*Msg_Num\n"
            "\t//\t*Msg_Text\n"
            "\t//\t*Msg_Sub\n"
            "\t//\t*Msg_Flag\n"
            '\tChoice isMsg_Choice `protobuf_oneof:"choice"`\n'
        ) in text
        assert "\tPlain\tint32\t`" in text

    def test_wrapper_types(self):
        text = _generate()
        assert "type isMsg_Choice interface { isMsg_Choice() }\n" in text
        assert 'type Msg_Num struct{ Num int32 `protobuf:"varint,1,opt,name=num,oneof"` }\n' in text
        assert 'type Msg_Sub struct{ Sub *Sub `protobuf:"bytes,3,opt,name=sub,oneof"` }\n' in text
        assert "func (*Msg_Num) isMsg_Choice() {}\n" in text

    def test_union_getter(self):
        text = _generate()
        assert "func (m *Msg) GetChoice() isMsg_Choice {\n\tif m != nil {\n\t\treturn m.Choice\n" in text

    def test_member_getters(self):
        text = _generate()
        assert (
            "func (m *Msg) GetNum() int32 {\n"
            "\tif x, ok := m.GetChoice().(*Msg_Num); ok {\n"
            "\t\treturn x.Num\n"
            "\t}\n"
            "\treturn 0\n"
            "}\n"
        ) in text
        assert "\t\treturn x.Sub\n\t}\n\treturn nil\n" in text
        assert "\t\treturn x.Flag\n\t}\n\treturn false\n" in text


class TestOneofFuncs:
    def test_registration(self):
        text = _generate()
        assert "func (*Msg) XXX_OneofFuncs() (func(msg proto.Message, b *proto.Buffer) error, " in text
        assert "\treturn _Msg_OneofMarshaler, _Msg_OneofUnmarshaler, _Msg_OneofSizer, []interface{}{\n" in text
        assert "\t\t(*Msg_Flag)(nil),\n" in text

    def test_marshaler(self):
        text = _generate()
        assert "func _Msg_OneofMarshaler(msg proto.Message, b *proto.Buffer) error {" in text
        assert "\tswitch x := m.Choice.(type) {\n" in text
        assert "\t\tb.EncodeVarint(1<<3|proto.WireVarint)\n\t\tb.EncodeVarint(uint64(x.Num))\n" in text
        assert "\t\tb.EncodeStringBytes(x.Text)\n" in text
        assert "\t\tif err := b.EncodeMessage(x.Sub); err != nil {\n" in text
        assert "\t\tt := uint64(0)\n\t\tif x.Flag {\n\t\t\tt = 1\n\t\t}\n" in text
        assert 'return fmt.Errorf("Msg.Choice has unexpected type %T", x)' in text

    def test_unmarshaler(self):
        text = _generate()
        assert "\tcase 1: // choice.num\n" in text
        assert "\t\tif wire != proto.WireVarint {\n\t\t\treturn true, proto.ErrInternalBadWireType\n" in text
        assert "\t\tx, err := b.DecodeVarint()\n\t\tm.Choice = &Msg_Num{int32(x)}\n" in text
        assert "\t\tmsg := new(Sub)\n\t\terr := b.DecodeMessage(msg)\n\t\tm.Choice = &Msg_Sub{msg}\n" in text
        assert "\t\tm.Choice = &Msg_Flag{x != 0}\n" in text
        assert "\tdefault:\n\t\treturn false, nil\n" in text

    def test_sizer(self):
        text = _generate()
        assert "func _Msg_OneofSizer(msg proto.Message) (n int) {" in text
        assert (
            "\t\ts := proto.Size(x.Sub)\n"
            "\t\tn += proto.SizeVarint(3<<3|proto.WireBytes)\n"
            "\t\tn += proto.SizeVarint(uint64(s))\n"
            "\t\tn += s\n"
        ) in text
        assert "\t\tn += proto.SizeVarint(uint64(len(x.Text)))\n\t\tn += len(x.Text)\n" in text
        assert "\t\tn += 1\n" in text

    def test_unhandled_kind(self, monkeypatch):
        monkeypatch.delitem(ENCODERS, FieldProto.TYPE_INT32)
        g, fd = _make_generator()
        layout = build_layout(g, fd.messages[0])
        with pytest.raises(GeneratorError, match="unhandled oneof field type TYPE_INT32"):
            generate_oneof_funcs(g, layout)
