from __future__ import annotations

import logging
from typing import Dict, List, Optional

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import FileDescriptor, SchemaObject
from protoc_gen_cgi.naming import dotted_slice

logger = logging.getLogger(__name__)


class TypeTable:
    """Maps fully-qualified proto type names (".pkg.Outer.Inner") to objects.

    Built once over every file in the request, not only the ones being
    generated.
    """

    def __init__(self, files: List[FileDescriptor]):
        self._objects: Dict[str, SchemaObject] = {}
        self._files_by_name: Dict[str, FileDescriptor] = {f.name: f for f in files}
        for f in files:
            # With no package, X is named ".X"; otherwise ".pkg.X".
            dotted_pkg = "." + f.package
            if dotted_pkg != ".":
                dotted_pkg += "."
            for enum in f.enums:
                self._objects[dotted_pkg + dotted_slice(enum.type_name())] = enum
            for md in f.messages:
                self._objects[dotted_pkg + dotted_slice(md.type_name())] = md

    def __contains__(self, name: str) -> bool:
        return name in self._objects

    def lookup(self, name: str) -> Optional[SchemaObject]:
        return self._objects.get(name)

    def file_by_name(self, name: str) -> Optional[FileDescriptor]:
        return self._files_by_name.get(name)

    def resolve(self, name: str, current: FileDescriptor) -> SchemaObject:
        """Object for name as seen from current.

        If the defining file is neither current nor one of its direct
        dependencies, the type can only be reached through a public import
        of some dependency, and that dependency's alias is returned instead.
        """
        obj = self._objects.get(name)
        if obj is None:
            raise GeneratorError(f"can't find object with type {name}")

        if self.is_direct(obj, current):
            return obj

        for dep_name in current.proto.dependency:
            dep = self._files_by_name.get(dep_name)
            if dep is None:
                continue
            for alias in dep.imported:
                if alias.target is obj:
                    return alias
        logger.warning(
            "failed finding publicly imported dependency for %s, used in %s",
            name, current.name,
        )
        return obj

    def is_direct(self, obj: SchemaObject, current: FileDescriptor) -> bool:
        """Whether obj is declared in current or in one of its direct dependencies."""
        if obj.file is current:
            return True
        return any(self._files_by_name.get(d) is obj.file for d in current.proto.dependency)
