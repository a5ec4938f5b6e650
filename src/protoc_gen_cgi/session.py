from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from google.protobuf.compiler import plugin_pb2

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.models import FileDescriptor
from protoc_gen_cgi.package_namer import PackageNamer
from protoc_gen_cgi.parser.descriptor_wrapper import wrap_types
from protoc_gen_cgi.parser.params import GeneratorParams, parse_parameters
from protoc_gen_cgi.plugin import Plugin, PluginRegistry, default_registry
from protoc_gen_cgi.resolver import TypeTable

logger = logging.getLogger(__name__)


@dataclass
class CompilationSession:
    """Everything one run of the generator shares between files.

    Built once from the request; after construction only the per-object
    memo caches and the namer registry (through plugin init) change.
    """

    request: plugin_pb2.CodeGeneratorRequest
    params: GeneratorParams
    namer: PackageNamer
    all_files: List[FileDescriptor]
    gen_files: List[FileDescriptor]
    type_table: TypeTable
    package_name: str
    support_packages: Dict[str, str]
    plugins: List[Plugin] = field(default_factory=list)

    @classmethod
    def from_request(
        cls,
        request: plugin_pb2.CodeGeneratorRequest,
        registry: Optional[PluginRegistry] = None,
    ) -> CompilationSession:
        if not request.file_to_generate:
            raise GeneratorError("no files to generate")

        params = parse_parameters(request.parameter)
        all_files = wrap_types(list(request.proto_file))
        by_name = {f.name: f for f in all_files}

        gen_files: List[FileDescriptor] = []
        for name in request.file_to_generate:
            fd = by_name.get(name)
            if fd is None:
                raise GeneratorError(f"could not find file named {name}")
            fd.index = len(gen_files)
            gen_files.append(fd)

        namer = PackageNamer()
        package_name, support = namer.set_package_names(gen_files, all_files, params)
        logger.debug("generating package %s from %d file(s)", package_name, len(gen_files))

        session = cls(
            request=request,
            params=params,
            namer=namer,
            all_files=all_files,
            gen_files=gen_files,
            type_table=TypeTable(all_files),
            package_name=package_name,
            support_packages=support,
        )
        registry = registry if registry is not None else default_registry
        session.plugins = registry.create_enabled(params.enabled_plugins())
        for p in session.plugins:
            p.init(session)
        return session

    def pkg(self, name: str) -> str:
        """Name a support package (proto, fmt, math) is imported under."""
        return self.support_packages[name]

    def file_by_name(self, name: str) -> Optional[FileDescriptor]:
        return self.type_table.file_by_name(name)

    def is_generated(self, fd: FileDescriptor) -> bool:
        return any(f is fd for f in self.gen_files)
