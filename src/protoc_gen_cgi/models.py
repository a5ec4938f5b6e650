from __future__ import annotations

import enum
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.naming import base_name, camel_case, camel_case_slice

# Field numbers used in SourceCodeInfo location paths. A path alternates
# between the field number of a repeated field and an index into it.
PACKAGE_PATH = 2          # FileDescriptorProto.package
MESSAGE_PATH = 4          # FileDescriptorProto.message_type
ENUM_PATH = 5             # FileDescriptorProto.enum_type
MESSAGE_FIELD_PATH = 2    # DescriptorProto.field
MESSAGE_MESSAGE_PATH = 3  # DescriptorProto.nested_type
MESSAGE_ENUM_PATH = 4     # DescriptorProto.enum_type
MESSAGE_ONEOF_PATH = 8    # DescriptorProto.oneof_decl
ENUM_VALUE_PATH = 2       # EnumDescriptorProto.value
SERVICE_PATH = 6          # FileDescriptorProto.service
SERVICE_METHOD_PATH = 2   # ServiceDescriptorProto.method


class ObjectKind(enum.Enum):
    MESSAGE = "message"
    ENUM = "enum"
    EXTENSION = "extension"
    IMPORTED = "imported"


class SchemaObject:
    """Anything a type reference can name: message, enum, extension or alias.

    Every object knows the file it belongs to, and through it the Go package
    name it is emitted under.
    """

    kind: ObjectKind
    file: FileDescriptor

    def package_name(self) -> str:
        return self.file.package_name

    def type_name(self) -> List[str]:
        raise NotImplementedError

    def proto_file(self) -> descriptor_pb2.FileDescriptorProto:
        return self.file.proto


@dataclass(eq=False)
class MessageDescriptor(SchemaObject):
    """A message, addressed by its position in the owning file's arena.

    parent_index and nested_indexes point into file.messages, so the tree
    never holds direct references between messages.
    """

    proto: descriptor_pb2.DescriptorProto
    file: FileDescriptor = field(repr=False)
    index: int
    arena_index: int
    parent_index: Optional[int] = None
    path: str = ""
    group: bool = False
    nested_indexes: List[int] = field(default_factory=list)
    enum_indexes: List[int] = field(default_factory=list)
    extensions: List[ExtensionDescriptor] = field(default_factory=list)
    _typename: Optional[List[str]] = field(default=None, repr=False)

    kind = ObjectKind.MESSAGE

    @property
    def name(self) -> str:
        return self.proto.name

    @property
    def parent(self) -> Optional[MessageDescriptor]:
        if self.parent_index is None:
            return None
        return self.file.messages[self.parent_index]

    @property
    def nested(self) -> List[MessageDescriptor]:
        return [self.file.messages[i] for i in self.nested_indexes]

    @property
    def enums(self) -> List[EnumDescriptor]:
        return [self.file.enums[i] for i in self.enum_indexes]

    @property
    def is_map_entry(self) -> bool:
        return self.proto.options.map_entry

    @property
    def proto3(self) -> bool:
        return self.file.proto3

    def type_name(self) -> List[str]:
        if self._typename is None:
            names = []
            node: Optional[MessageDescriptor] = self
            while node is not None:
                names.append(node.name)
                node = node.parent
            self._typename = names[::-1]
        return self._typename

    def index_path(self) -> List[int]:
        """Indexes from the file down to this message, for Descriptor()."""
        indexes = []
        node: Optional[MessageDescriptor] = self
        while node is not None:
            indexes.append(node.index)
            node = node.parent
        return indexes[::-1]


@dataclass(eq=False)
class EnumDescriptor(SchemaObject):
    proto: descriptor_pb2.EnumDescriptorProto
    file: FileDescriptor = field(repr=False)
    index: int
    parent_index: Optional[int] = None
    path: str = ""
    _typename: Optional[List[str]] = field(default=None, repr=False)

    kind = ObjectKind.ENUM

    @property
    def name(self) -> str:
        return self.proto.name

    @property
    def parent(self) -> Optional[MessageDescriptor]:
        if self.parent_index is None:
            return None
        return self.file.messages[self.parent_index]

    @property
    def proto3(self) -> bool:
        return self.file.proto3

    def type_name(self) -> List[str]:
        if self._typename is None:
            parent = self.parent
            prefix = list(parent.type_name()) if parent is not None else []
            self._typename = prefix + [self.name]
        return self._typename

    def prefix(self) -> str:
        """Prefix for value constants, derived from the enclosing type chain."""
        parent = self.parent
        if parent is None:
            return camel_case(self.name) + "_"
        return camel_case_slice(self.type_name()[:-1]) + "_"

    def integer_value_as_string(self, name: str) -> str:
        for value in self.proto.value:
            if value.name == name:
                return str(value.number)
        raise GeneratorError(
            f"cannot find value for enum constant {name} in {'.'.join(self.type_name())}"
        )

    def index_path(self) -> List[int]:
        parent = self.parent
        indexes = parent.index_path() if parent is not None else []
        return indexes + [self.index]


@dataclass(eq=False)
class ExtensionDescriptor(SchemaObject):
    proto: descriptor_pb2.FieldDescriptorProto
    file: FileDescriptor = field(repr=False)
    parent_index: Optional[int] = None

    kind = ObjectKind.EXTENSION

    @property
    def name(self) -> str:
        return self.proto.name

    @property
    def parent(self) -> Optional[MessageDescriptor]:
        if self.parent_index is None:
            return None
        return self.file.messages[self.parent_index]

    def type_name(self) -> List[str]:
        parent = self.parent
        prefix = list(parent.type_name()) if parent is not None else []
        return prefix + [self.name]

    def desc_name(self) -> str:
        """Go variable holding the ExtensionDesc, e.g. E_Outer_Inner_Name."""
        return "E_" + "_".join(camel_case(s) for s in self.type_name())


@dataclass(eq=False)
class ImportedDescriptor(SchemaObject):
    """An object of another file, re-exported here through a public import."""

    file: FileDescriptor = field(repr=False)
    target: SchemaObject = field(repr=False)

    kind = ObjectKind.IMPORTED

    def type_name(self) -> List[str]:
        return self.target.type_name()


@dataclass(eq=False)
class FileDescriptor:
    """One .proto file with its wrapped declarations.

    messages is the arena every MessageDescriptor of the file lives in, in
    depth-first declaration order; enums likewise holds top-level enums
    followed by nested ones.
    """

    proto: descriptor_pb2.FileDescriptorProto
    messages: List[MessageDescriptor] = field(default_factory=list)
    enums: List[EnumDescriptor] = field(default_factory=list)
    extensions: List[ExtensionDescriptor] = field(default_factory=list)
    imported: List[ImportedDescriptor] = field(default_factory=list)
    comments: Dict[str, descriptor_pb2.SourceCodeInfo.Location] = field(default_factory=dict)
    exported: Dict[SchemaObject, list] = field(default_factory=dict)
    index: int = -1
    _package_name: Optional[str] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.proto.name

    @property
    def package(self) -> str:
        return self.proto.package

    @property
    def proto3(self) -> bool:
        return self.proto.syntax == "proto3"

    @property
    def package_name(self) -> str:
        if self._package_name is None:
            raise GeneratorError(f"internal error: no package name defined for {self.name}")
        return self._package_name

    @package_name.setter
    def package_name(self, value: str) -> None:
        self._package_name = value

    @property
    def has_package_name(self) -> bool:
        return self._package_name is not None

    @property
    def var_name(self) -> str:
        """Unexported Go variable holding the gzipped descriptor bytes."""
        return f"fileDescriptor{self.index}"

    def top_level_messages(self) -> List[MessageDescriptor]:
        return [m for m in self.messages if m.parent_index is None]

    def go_package_option(self) -> Tuple[str, str, bool]:
        """Interpret the go_package option as (import path, package, present).

        A bare name gives ("", name, True); a path gives the path and its last
        element, unless a ";name" suffix names the package explicitly.
        """
        pkg = self.proto.options.go_package
        if not pkg:
            return "", "", False
        if "/" not in pkg:
            return "", pkg, True
        imp_path, pkg = pkg, pkg[pkg.rindex("/") + 1:]
        if ";" in imp_path:
            sc = imp_path.index(";")
            imp_path, pkg = imp_path[:sc], imp_path[sc + 1:]
        return imp_path, pkg, True

    def go_package_name(self) -> Tuple[str, bool]:
        """Package name to emit and whether go_package declared it explicitly."""
        _, pkg, ok = self.go_package_option()
        if ok:
            return pkg, True
        if self.package:
            return self.package, False
        return base_name(self.name), False

    def go_file_name(self) -> str:
        name = self.name
        stem, ext = posixpath.splitext(name)
        if ext in (".proto", ".protodevel"):
            name = stem
        name += ".pb.go"
        imp_path, _, ok = self.go_package_option()
        if ok and imp_path:
            return posixpath.join(imp_path, posixpath.basename(name))
        return name

    def add_export(self, obj: SchemaObject, sym) -> None:
        self.exported.setdefault(obj, []).append(sym)

    def is_weak_dependency(self, i: int) -> bool:
        return i in self.proto.weak_dependency
