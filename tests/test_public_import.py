import logging

from builders import (
    REPEATED,
    FieldProto,
    make_enum,
    make_field,
    make_file,
    make_map_entry,
    make_message,
    make_request,
)
from protoc_gen_cgi.main import generate


def _base(go_package=""):
    bag = make_message("Bag", fields=[
        make_field("items", 1, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name=".base.Item"),
        make_field("by_name", 2, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name=".base.Bag.ByNameEntry"),
        make_field("kinds", 3, FieldProto.TYPE_ENUM, label=REPEATED, type_name=".base.Kind"),
        make_field("first", 4, FieldProto.TYPE_MESSAGE, type_name=".base.Item"),
        make_field("label", 5, FieldProto.TYPE_STRING),
    ], nested=[
        make_map_entry("ByNameEntry", FieldProto.TYPE_STRING, FieldProto.TYPE_MESSAGE, ".base.Item"),
    ])
    item = make_message("Item", fields=[make_field("n", 1, FieldProto.TYPE_INT32)])
    return make_file("base.proto", package="base", messages=[item, bag],
                     enums=[make_enum("Kind", [("K_A", 0), ("K_B", 1)])],
                     go_package=go_package)


def _pub(go_package=""):
    return make_file("pub.proto", package="pub", dependency=["base.proto"], public_dependency=[0],
                     go_package=go_package)


def _content(request, name=None):
    response = generate(request)
    files = {f.name: f.content for f in response.file}
    if name is None:
        [content] = files.values()
        return content
    return files[name]


class TestForwardedDeclarations:
    def test_message_alias(self):
        text = _content(make_request([_base(), _pub()]))
        assert "// Item from public import base.proto\n" in text
        assert "type Item base.Item\n" in text
        assert "func (m *Item) Reset() { (*base.Item)(m).Reset() }\n" in text
        assert "func (m *Item) GetN() int32 { return (*base.Item)(m).GetN() }\n" in text
        assert "func (m *Bag) GetLabel() string { return (*base.Bag)(m).GetLabel() }\n" in text

    def test_enum_alias(self):
        text = _content(make_request([_base(), _pub()]))
        assert "type Kind base.Kind\n" in text
        assert "var Kind_name = base.Kind_name\n" in text
        assert "const Kind_K_A = Kind(base.Kind_K_A)\n" in text
        assert "func (x Kind) Enum() *Kind { return (*Kind)((base.Kind)(x).Enum()) }\n" in text

    def test_dependency_is_imported_by_name(self):
        text = _content(make_request([_base(), _pub()]))
        assert 'import base "."\n' in text
        assert "package pub\n" in text

    def test_map_entries_are_not_forwarded(self):
        text = _content(make_request([_base(), _pub()]))
        assert "ByNameEntry" not in text


class TestConvertedGetters:
    def test_repeated_message_is_copied_element_by_element(self):
        text = _content(make_request([_base(), _pub()]))
        assert (
            "func (m *Bag) GetItems() []*Item {\n"
            "\to := (*base.Bag)(m).GetItems()\n"
            "\tif o == nil {\n"
            "\t\treturn nil\n"
            "\t}\n"
            "\ts := make([]*Item, len(o))\n"
            "\tfor i, x := range o {\n"
            "\t\ts[i] = (*Item)(x)\n"
            "\t}\n"
            "\treturn s\n"
            "}\n"
        ) in text

    def test_map_values_are_copied(self):
        text = _content(make_request([_base(), _pub()]))
        assert "func (m *Bag) GetByName() map[string]*Item {\n" in text
        assert "\ts := make(map[string]*Item, len(o))\n\tfor k, v := range o {\n\t\ts[k] = (*Item)(v)\n" in text

    def test_repeated_enum_is_copied(self):
        text = _content(make_request([_base(), _pub()]))
        assert "func (m *Bag) GetKinds() []Kind {\n" in text
        assert "\t\ts[i] = Kind(x)\n" in text

    def test_single_message_is_cast(self):
        text = _content(make_request([_base(), _pub()]))
        assert "func (m *Bag) GetFirst() *Item { return (*Item)((*base.Bag)(m).GetFirst()) }\n" in text


class TestDirectAndHiddenElementTypes:
    def _files(self, top_deps, public=(0,)):
        common = make_file("common.proto", package="common", messages=[make_message("Leaf")])
        holder = make_message("Holder", fields=[
            make_field("leaves", 1, FieldProto.TYPE_MESSAGE, label=REPEATED, type_name=".common.Leaf"),
        ])
        base2 = make_file("base2.proto", package="base2", messages=[holder], dependency=["common.proto"])
        top = make_file("top.proto", package="top", dependency=top_deps, public_dependency=list(public))
        return [common, base2, top]

    def test_direct_dependency_type_is_forwarded_unchanged(self):
        text = _content(make_request(self._files(["base2.proto", "common.proto"])))
        assert (
            "func (m *Holder) GetLeaves() []*common.Leaf { return (*base2.Holder)(m).GetLeaves() }\n"
        ) in text
        assert 'import common "."\n' in text

    def test_invisible_type_is_skipped(self, caplog):
        with caplog.at_level(logging.WARNING):
            text = _content(make_request(self._files(["base2.proto"])))
        assert "type Holder base2.Holder\n" in text
        assert "GetLeaves" not in text
        assert "not forwarding Holder.GetLeaves into top.proto" in caplog.text

    def test_reexported_third_file_type_is_copied(self):
        text = _content(make_request(self._files(["base2.proto", "common.proto"], public=(0, 1))))
        assert "type Leaf common.Leaf\n" in text
        assert (
            "func (m *Holder) GetLeaves() []*Leaf {\n"
            "\to := (*base2.Holder)(m).GetLeaves()\n"
        ) in text
        assert "\t\ts[i] = (*Leaf)(x)\n" in text


class TestSamePackage:
    def test_public_import_within_the_run_is_ignored(self):
        request = make_request([_base("same"), _pub("same")], to_generate=["base.proto", "pub.proto"])
        text = _content(request, "pub.pb.go")
        assert "// Ignoring public import of Item from base.proto\n" in text
        assert "type Item" not in text
        # The dependency is our own package, so it is not imported at all.
        assert 'import base "."' not in text
