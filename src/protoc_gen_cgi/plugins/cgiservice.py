from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from google.protobuf import descriptor_pb2

from protoc_gen_cgi.models import SERVICE_METHOD_PATH, SERVICE_PATH
from protoc_gen_cgi.naming import camel_case, go_quote, upper_case
from protoc_gen_cgi.plugin import Plugin, register_plugin

if TYPE_CHECKING:
    from protoc_gen_cgi.generator.file_generator import FileGenerator
    from protoc_gen_cgi.session import CompilationSession

logger = logging.getLogger(__name__)


def command_name(service: str, method: str) -> str:
    """Wire name of the command that invokes method, e.g. GREETER_CMD_SAY_HELLO."""
    return f"{upper_case(service)}_CMD_{upper_case(method)}"


@register_plugin
class CgiServicePlugin(Plugin):
    """Handler interfaces and command dispatchers for the services of a file."""

    name = "cgiservice"

    def init(self, session: CompilationSession) -> None:
        super().init(session)
        self.context_pkg = session.namer.register_unique("context")

    def generate(self, g: FileGenerator) -> None:
        services = g.file.proto.service
        if not services:
            return
        g.p()
        g.p("// Command handlers for the services of ", g.file.name)
        g.p()
        for i, service in enumerate(services):
            self._generate_service(g, service, i)

    def generate_imports(self, g: FileGenerator) -> None:
        if not g.file.proto.service:
            return
        g.p("import ", self.context_pkg, " ", go_quote("context"))

    def _generate_service(self, g: FileGenerator, service: descriptor_pb2.ServiceDescriptorProto, index: int) -> None:
        serv_name = camel_case(service.name)
        handler = serv_name + "Handler"
        dispatch = "Dispatch" + serv_name
        ctx = self.context_pkg + ".Context"
        proto = g.pkg("proto")
        path = f"{SERVICE_PATH},{index}"

        methods = []
        for j, method in enumerate(service.method):
            if method.client_streaming or method.server_streaming:
                logger.debug("skipping streaming method %s.%s", service.name, method.name)
                continue
            g.record_type_use(method.input_type)
            g.record_type_use(method.output_type)
            methods.append((
                j,
                camel_case(method.name),
                g.type_name(g.object_named(method.input_type)),
                g.type_name(g.object_named(method.output_type)),
            ))

        g.p()
        if not g.print_comments(path):
            g.p("// ", handler, " serves the commands of the ", service.name, " service.")
        g.p("type ", handler, " interface {")
        with g.indented():
            for j, meth, in_type, out_type in methods:
                g.print_comments(f"{path},{SERVICE_METHOD_PATH},{j}")
                g.p(meth, "(ctx ", ctx, ", in *", in_type, ") (*", out_type, ", error)")
        g.p("}")
        g.p()

        g.p("const (")
        with g.indented():
            for _, meth, _, _ in methods:
                g.p("Cmd", serv_name, meth, " = ", go_quote(command_name(service.name, meth)))
        g.p(")")
        g.p()

        g.p("// ", dispatch, " routes cmd to the matching method of h.")
        g.p("func ", dispatch, "(ctx ", ctx, ", h ", handler, ", cmd string, in ", proto,
            ".Message) (", proto, ".Message, error) {")
        with g.indented():
            g.p("switch cmd {")
            for _, meth, in_type, _ in methods:
                g.p("case Cmd", serv_name, meth, ":")
                with g.indented():
                    g.p("req, ok := in.(*", in_type, ")")
                    g.p("if !ok {")
                    with g.indented():
                        g.p("return nil, ", g.pkg("fmt"), ".Errorf(",
                            go_quote(f"{dispatch}: %s expects *{in_type}, got %T"), ", cmd, in)")
                    g.p("}")
                    g.p("out, err := h.", meth, "(ctx, req)")
                    g.p("if err != nil {")
                    with g.indented():
                        g.p("return nil, err")
                    g.p("}")
                    g.p("return out, nil")
            g.p("}")
            g.p("return nil, ", g.pkg("fmt"), ".Errorf(", go_quote(f"{dispatch}: unknown command %q"), ", cmd)")
        g.p("}")
