import pytest

from builders import (
    FieldProto,
    add_comment,
    make_enum,
    make_field,
    make_file,
    make_map_entry,
    make_message,
)
from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import ImportedDescriptor
from protoc_gen_cgi.parser.descriptor_wrapper import (
    _build_nested_enums,
    _build_nested_messages,
    wrap_file,
    wrap_types,
)


def _nested_file():
    inner = make_message("Inner", enums=[make_enum("Mode", [("OFF", 0), ("ON", 1)])])
    outer = make_message("Outer", nested=[inner, make_message("Sibling")])
    return make_file("n.proto", package="pkg", messages=[outer, make_message("Other")],
                     enums=[make_enum("Top", [("A", 0)])])


class TestMessageArena:
    def test_depth_first_order(self):
        fd = wrap_file(_nested_file())
        assert [m.type_name() for m in fd.messages] == [
            ["Outer"],
            ["Outer", "Inner"],
            ["Outer", "Sibling"],
            ["Other"],
        ]

    def test_parent_and_nested_links(self):
        fd = wrap_file(_nested_file())
        outer, inner, sibling, other = fd.messages
        assert outer.parent is None
        assert inner.parent is outer
        assert outer.nested == [inner, sibling]
        assert other.nested == []
        assert fd.top_level_messages() == [outer, other]

    def test_paths_and_index_path(self):
        fd = wrap_file(_nested_file())
        outer, inner, sibling, other = fd.messages
        assert outer.path == "4,0"
        assert sibling.path == "4,0,3,1"
        assert other.path == "4,1"
        assert sibling.index_path() == [0, 1]

    def test_group_detection(self):
        group = make_message("MyGroup", fields=[make_field("a", 2, FieldProto.TYPE_INT32)])
        outer = make_message("Outer", nested=[group, make_message("Plain")], fields=[
            make_field("mygroup", 1, FieldProto.TYPE_GROUP, type_name=".pkg.Outer.MyGroup"),
        ])
        fd = wrap_file(make_file("g.proto", package="pkg", messages=[outer]))
        assert fd.messages[1].group
        assert not fd.messages[2].group

    def test_lost_nested_message_is_fatal(self):
        fd = wrap_file(_nested_file())
        fd.messages[2].parent_index = None
        with pytest.raises(GeneratorError, match="internal error: nesting failure for Outer"):
            _build_nested_messages(fd)


class TestEnums:
    def test_top_level_first_then_nested(self):
        fd = wrap_file(_nested_file())
        assert [e.type_name() for e in fd.enums] == [["Top"], ["Outer", "Inner", "Mode"]]

    def test_nested_enum_attaches_to_immediate_parent(self):
        fd = wrap_file(_nested_file())
        inner = fd.messages[1]
        mode = fd.enums[1]
        assert mode.parent is inner
        assert inner.enums == [mode]
        assert fd.messages[0].enums == []
        assert mode.path == "4,0,3,0,4,0"

    def test_prefix(self):
        fd = wrap_file(_nested_file())
        assert fd.enums[0].prefix() == "Top_"
        assert fd.enums[1].prefix() == "Outer_Inner_"

    def test_unknown_value_name(self):
        fd = wrap_file(_nested_file())
        assert fd.enums[1].integer_value_as_string("ON") == "1"
        with pytest.raises(GeneratorError, match="cannot find value for enum constant NOPE"):
            fd.enums[1].integer_value_as_string("NOPE")

    def test_lost_nested_enum_is_fatal(self):
        fd = wrap_file(_nested_file())
        fd.enums[1].parent_index = None
        with pytest.raises(GeneratorError, match="internal error: enum nesting failure for Inner"):
            _build_nested_enums(fd)


class TestExtensions:
    def test_file_and_message_extensions(self):
        ext = make_field("extra", 100, FieldProto.TYPE_INT32, extendee=".pkg.Base")
        nested_ext = make_field("more", 101, FieldProto.TYPE_INT32, extendee=".pkg.Base")
        holder = make_message("Holder", extensions=[nested_ext])
        fd = wrap_file(make_file("e.proto", package="pkg", messages=[holder], extensions=[ext]))
        assert [e.desc_name() for e in fd.extensions] == ["E_Extra"]
        assert [e.desc_name() for e in fd.messages[0].extensions] == ["E_Holder_More"]


class TestComments:
    def test_leading_comments_keyed_by_path(self):
        proto = _nested_file()
        add_comment(proto, [4, 0], " Outer does things.\n")
        proto.source_code_info.location.add(path=[4, 1])
        fd = wrap_file(proto)
        assert list(fd.comments) == ["4,0"]
        assert fd.comments["4,0"].leading_comments == " Outer does things.\n"


class TestPublicImports:
    def _files(self):
        bag = make_message("Bag", nested=[
            make_map_entry("ByNameEntry", FieldProto.TYPE_STRING, FieldProto.TYPE_STRING),
            make_message("Detail"),
        ])
        base = make_file("base.proto", package="base", messages=[bag],
                         enums=[make_enum("Kind", [("K_A", 0)])],
                         extensions=[make_field("ext", 10, FieldProto.TYPE_INT32, extendee=".base.Bag")])
        pub = make_file("pub.proto", package="pub", dependency=["base.proto"], public_dependency=[0])
        return [base, pub]

    def test_aliases_skip_map_entries(self):
        base, pub = wrap_types(self._files())
        assert all(isinstance(a, ImportedDescriptor) for a in pub.imported)
        assert [a.type_name() for a in pub.imported] == [
            ["Bag"], ["Bag", "Detail"], ["Kind"], ["ext"],
        ]
        assert all(a.file is pub for a in pub.imported)
        assert base.imported == []

    def test_missing_public_dependency(self):
        pub = make_file("pub.proto", dependency=["gone.proto"], public_dependency=[0])
        with pytest.raises(GeneratorError, match="public dependency gone.proto"):
            wrap_types([pub])
