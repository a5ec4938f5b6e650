from __future__ import annotations

import logging
from typing import Dict, List, Optional

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import (
    ENUM_PATH,
    MESSAGE_ENUM_PATH,
    MESSAGE_MESSAGE_PATH,
    MESSAGE_PATH,
    EnumDescriptor,
    ExtensionDescriptor,
    FileDescriptor,
    ImportedDescriptor,
    MessageDescriptor,
)

logger = logging.getLogger(__name__)

FieldProto = descriptor_pb2.FieldDescriptorProto


def wrap_file(proto: descriptor_pb2.FileDescriptorProto) -> FileDescriptor:
    """Wrap one FileDescriptorProto into messages, enums and extensions.

    Messages must be wrapped before enums, since nested enums attach to the
    message arena by index.
    """
    fd = FileDescriptor(proto=proto)
    for i, desc in enumerate(proto.message_type):
        _wrap_message(fd, desc, None, i)
    _build_nested_messages(fd)
    _wrap_enums(fd)
    _build_nested_enums(fd)
    for ext in proto.extension:
        fd.extensions.append(ExtensionDescriptor(proto=ext, file=fd))
    fd.comments = extract_comments(proto)
    logger.debug(
        "wrapped %s: %d message(s), %d enum(s), %d extension(s)",
        fd.name, len(fd.messages), len(fd.enums), len(fd.extensions),
    )
    return fd


def wrap_types(protos: List[descriptor_pb2.FileDescriptorProto]) -> List[FileDescriptor]:
    """Wrap every file of the request, then resolve public-import aliases."""
    files = [wrap_file(p) for p in protos]
    by_name = {f.name: f for f in files}
    for fd in files:
        fd.imported = wrap_imported(fd, by_name)
    return files


def _full_proto_name(fd: FileDescriptor, type_name: List[str]) -> str:
    parts = list(type_name)
    if fd.package:
        parts.insert(0, fd.package)
    return "." + ".".join(parts)


def _wrap_message(
    fd: FileDescriptor,
    desc: descriptor_pb2.DescriptorProto,
    parent: Optional[MessageDescriptor],
    index: int,
) -> None:
    if parent is None:
        path = f"{MESSAGE_PATH},{index}"
        parent_index = None
    else:
        path = f"{parent.path},{MESSAGE_MESSAGE_PATH},{index}"
        parent_index = parent.arena_index

    md = MessageDescriptor(
        proto=desc,
        file=fd,
        index=index,
        arena_index=len(fd.messages),
        parent_index=parent_index,
        path=path,
    )
    fd.messages.append(md)

    # A group looks exactly like a nested message; the only tell is a
    # TYPE_GROUP field in the parent that refers to it.
    if parent is not None:
        expected = _full_proto_name(fd, md.type_name())
        for f in parent.proto.field:
            if f.type == FieldProto.TYPE_GROUP and f.type_name == expected:
                md.group = True
                break

    for ext in desc.extension:
        md.extensions.append(ExtensionDescriptor(proto=ext, file=fd, parent_index=md.arena_index))

    for i, nested in enumerate(desc.nested_type):
        _wrap_message(fd, nested, md, i)


def _build_nested_messages(fd: FileDescriptor) -> None:
    for md in fd.messages:
        if not md.proto.nested_type:
            continue
        md.nested_indexes = [
            child.arena_index for child in fd.messages
            if child.parent_index == md.arena_index
        ]
        if len(md.nested_indexes) != len(md.proto.nested_type):
            raise GeneratorError(f"internal error: nesting failure for {md.name}")


def _wrap_enums(fd: FileDescriptor) -> None:
    for i, enum in enumerate(fd.proto.enum_type):
        fd.enums.append(EnumDescriptor(
            proto=enum, file=fd, index=i, path=f"{ENUM_PATH},{i}",
        ))
    # Enums of nested messages attach to their immediate parent only.
    for md in fd.messages:
        for i, enum in enumerate(md.proto.enum_type):
            fd.enums.append(EnumDescriptor(
                proto=enum,
                file=fd,
                index=i,
                parent_index=md.arena_index,
                path=f"{md.path},{MESSAGE_ENUM_PATH},{i}",
            ))


def _build_nested_enums(fd: FileDescriptor) -> None:
    for md in fd.messages:
        if not md.proto.enum_type:
            continue
        md.enum_indexes = [
            i for i, enum in enumerate(fd.enums)
            if enum.parent_index == md.arena_index
        ]
        if len(md.enum_indexes) != len(md.proto.enum_type):
            raise GeneratorError(f"internal error: enum nesting failure for {md.name}")


def wrap_imported(fd: FileDescriptor, files_by_name: Dict[str, FileDescriptor]) -> List[ImportedDescriptor]:
    """Alias every type of each public dependency into fd."""
    imported: List[ImportedDescriptor] = []
    for index in fd.proto.public_dependency:
        dep_name = fd.proto.dependency[index]
        dep = files_by_name.get(dep_name)
        if dep is None:
            raise GeneratorError(f"public dependency {dep_name} of {fd.name} is not in the request")
        for md in dep.messages:
            if md.is_map_entry:
                continue
            imported.append(ImportedDescriptor(file=fd, target=md))
        for enum in dep.enums:
            imported.append(ImportedDescriptor(file=fd, target=enum))
        for ext in dep.extensions:
            imported.append(ImportedDescriptor(file=fd, target=ext))
    return imported


def extract_comments(proto: descriptor_pb2.FileDescriptorProto) -> Dict[str, descriptor_pb2.SourceCodeInfo.Location]:
    """Index locations that carry a leading comment by their comma-joined path."""
    comments = {}
    for loc in proto.source_code_info.location:
        if not loc.HasField("leading_comments"):
            continue
        comments[",".join(str(n) for n in loc.path)] = loc
    return comments
