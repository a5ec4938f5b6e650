from __future__ import annotations

import gzip
import logging
import posixpath
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from google.protobuf import descriptor_pb2
from google.protobuf.compiler import plugin_pb2
from jinja2 import Environment, FileSystemLoader

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.enum_emitter import generate_enum, generate_enum_registration
from protoc_gen_cgi.generator.extension_emitter import generate_extension, generate_extension_registration
from protoc_gen_cgi.generator.message_emitter import generate_message
from protoc_gen_cgi.generator.printer import GoPrinter
from protoc_gen_cgi.generator.symbols import generate_imported
from protoc_gen_cgi.generator.validator import validate_go_source
from protoc_gen_cgi.models import PACKAGE_PATH, FileDescriptor, SchemaObject
from protoc_gen_cgi.naming import camel_case_slice, go_quote
from protoc_gen_cgi.session import CompilationSession

logger = logging.getLogger(__name__)

# Bumped whenever generated code needs a newer proto runtime.
GENERATED_CODE_VERSION = 2

PROTO_IMPORT_PATH = "github.com/golang/protobuf/proto"


def _get_template_env() -> Environment:
    template_dir = Path(__file__).parent.parent / "templates"
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["goquote"] = go_quote
    return env


class FileGenerator:
    """Writes the Go source for one .proto file.

    The body is printed first. The header and import block are rendered
    last, once the body has recorded which packages it refers to.
    """

    def __init__(self, session: CompilationSession, file: FileDescriptor, write_output: bool = True):
        self.session = session
        self.file = file
        self.out = GoPrinter(write_output)
        self.used_packages: Set[str] = set()
        self._init: List[str] = []

    @property
    def write_output(self) -> bool:
        return self.out.write_output

    # Printing.

    def p(self, *parts) -> None:
        self.out.p(*parts)

    def indent(self) -> None:
        self.out.indent()

    def outdent(self) -> None:
        self.out.outdent()

    @contextmanager
    def indented(self) -> Iterator[None]:
        with self.out.indented():
            yield

    def print_comments(self, path: str) -> bool:
        """Print the leading comment recorded for path, if any."""
        if not self.write_output:
            return False
        loc = self.file.comments.get(path)
        if loc is None:
            return False
        text = loc.leading_comments
        if text.endswith("\n"):
            text = text[:-1]
        for line in text.split("\n"):
            self.p("// ", line[1:] if line.startswith(" ") else line)
        return True

    def add_init(self, stmt: str) -> None:
        self._init.append(stmt)

    # Names.

    def pkg(self, name: str) -> str:
        return self.session.pkg(name)

    def object_named(self, type_name: str) -> SchemaObject:
        return self.session.type_table.resolve(type_name, self.file)

    def default_package_name(self, obj: SchemaObject) -> str:
        """Qualifier for obj: empty inside our own package, else "pkg."."""
        pkg = obj.package_name()
        if pkg == self.session.package_name:
            return ""
        return pkg + "."

    def type_name(self, obj: SchemaObject) -> str:
        return self.default_package_name(obj) + camel_case_slice(obj.type_name())

    def type_name_with_package(self, obj: SchemaObject) -> str:
        return obj.package_name() + "." + camel_case_slice(obj.type_name())

    def record_type_use(self, type_name: str) -> None:
        """Mark the package defining type_name as used by this file."""
        if type_name and type_name in self.session.type_table:
            self.used_packages.add(self.object_named(type_name).package_name())

    # Generation.

    def generate(self) -> Optional[str]:
        """Build the file; return its formatted text, or None if not written."""
        fd = self.file
        if fd.index == 0:
            self.p("// This is a compile-time assertion to ensure that this generated file")
            self.p("// is compatible with the proto package it is being compiled against.")
            self.p("// A compilation error at this line likely means your copy of the")
            self.p("// proto package needs to be updated.")
            self.p("const _ = ", self.pkg("proto"), ".ProtoPackageIsVersion",
                   GENERATED_CODE_VERSION, " // please upgrade the proto package")
            self.p()

        for alias in fd.imported:
            generate_imported(self, alias)
        for enum in fd.enums:
            generate_enum(self, enum)
        for message in fd.messages:
            # Map entries are represented by Go maps, not types.
            if message.is_map_entry:
                continue
            generate_message(self, message)
        for ext in fd.extensions:
            generate_extension(self, ext)
        self._generate_init_function()

        # Plugins run before the import block is built, so their references
        # count towards the used packages.
        for plugin in self.session.plugins:
            plugin.generate(self)

        if not self.write_output:
            return None
        self._generate_file_descriptor()

        body = self.out.text()
        source = "\n".join([self._generate_header(), self._generate_imports(), body])
        return validate_go_source(source)

    def _generate_init_function(self) -> None:
        fd = self.file
        for enum in fd.enums:
            generate_enum_registration(self, enum)
        for message in fd.messages:
            for ext in message.extensions:
                generate_extension_registration(self, ext)
        for ext in fd.extensions:
            generate_extension_registration(self, ext)
        if not self._init:
            return
        self.p("func init() {")
        with self.indented():
            for stmt in self._init:
                self.p(stmt)
        self.p("}")
        self._init = []

    def _generate_file_descriptor(self) -> None:
        pb = descriptor_pb2.FileDescriptorProto()
        pb.CopyFrom(self.file.proto)
        pb.ClearField("source_code_info")
        data = gzip.compress(pb.SerializeToString(), compresslevel=9, mtime=0)

        rows = [
            " ".join(f"0x{b:02x}," for b in data[i:i + 16])
            for i in range(0, len(data), 16)
        ]
        self.p()
        template = _get_template_env().get_template("file_descriptor.go.j2")
        self.out.write(template.render(
            proto=self.pkg("proto"),
            file_name=self.file.name,
            var_name=self.file.var_name,
            size=len(data),
            rows=rows,
        ))

    def _generate_header(self) -> str:
        fd = self.file
        package_comment: List[str] = []
        loc = fd.comments.get(str(PACKAGE_PATH))
        if loc is not None:
            text = loc.leading_comments
            if text.endswith("\n"):
                text = text[:-1]
            for line in text.split("\n"):
                if line.startswith(" "):
                    line = line[1:]
                # Must not close the surrounding block comment.
                package_comment.append(line.replace("*/", "* /"))

        messages = [
            camel_case_slice(msg.type_name())
            for f in self.session.gen_files
            for msg in f.top_level_messages()
        ]
        template = _get_template_env().get_template("header.go.j2")
        return template.render(
            source=fd.name,
            package=fd.package_name,
            package_doc=fd.index == 0,
            package_comment=package_comment,
            files=[f.name for f in self.session.gen_files],
            messages=messages,
        )

    def _generate_imports(self) -> str:
        session = self.session
        params = session.params
        imports: List[Dict] = []
        seen: Set[Tuple[str, str]] = set()
        for i, dep_name in enumerate(self.file.proto.dependency):
            dep = session.file_by_name(dep_name)
            if dep is None:
                raise GeneratorError(f"could not find file named {dep_name}")
            if dep.package_name == session.package_name:
                continue
            # By default the import path is the directory of the Go file.
            import_path = posixpath.dirname(dep.go_file_name()) or "."
            if dep_name in params.import_map:
                import_path = params.import_map[dep_name].split(";", 1)[0]
            import_path = params.import_prefix + import_path
            weak = self.file.is_weak_dependency(i)
            # Every dependency is imported, used or not, so the binary links
            # the full set of registered types.
            if weak or dep.package_name in self.used_packages:
                name = dep.package_name
            else:
                name = "_"
            if (name, import_path) in seen:
                continue
            seen.add((name, import_path))
            imports.append({"name": name, "path": import_path, "weak": weak})

        plugin_imports = ""
        if session.plugins:
            body, self.out = self.out, GoPrinter()
            try:
                for plugin in session.plugins:
                    plugin.generate_imports(self)
                    self.p()
                plugin_imports = self.out.text()
            finally:
                self.out = body

        template = _get_template_env().get_template("imports.go.j2")
        return template.render(
            proto=self.pkg("proto"),
            proto_path=params.import_prefix + PROTO_IMPORT_PATH,
            fmt=self.pkg("fmt"),
            math=self.pkg("math"),
            imports=imports,
            plugin_imports=plugin_imports,
        )


def generate_all_files(session: CompilationSession) -> plugin_pb2.CodeGeneratorResponse:
    """Run the generator over every file of the request.

    Files not being generated are still walked, silently, so that the
    symbols they export are known when a later file publicly imports them.
    """
    response = plugin_pb2.CodeGeneratorResponse()
    for fd in session.all_files:
        write = session.is_generated(fd)
        g = FileGenerator(session, fd, write_output=write)
        content = g.generate()
        if content is None:
            continue
        logger.debug("generated %s", fd.go_file_name())
        response.file.add(name=fd.go_file_name(), content=content)
    return response
