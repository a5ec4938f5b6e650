from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from google.protobuf.compiler import plugin_pb2
from google.protobuf.message import DecodeError

from protoc_gen_cgi.errors import GeneratorError
from protoc_gen_cgi.generator.file_generator import generate_all_files
from protoc_gen_cgi.plugin import PluginRegistry
from protoc_gen_cgi.plugins import cgiservice  # noqa: F401  registers the plugin
from protoc_gen_cgi.session import CompilationSession

logger = logging.getLogger(__name__)

LOG_FORMAT = "protoc-gen-cgi: %(levelname)s: %(message)s"


def generate(
    request: plugin_pb2.CodeGeneratorRequest,
    registry: Optional[PluginRegistry] = None,
) -> plugin_pb2.CodeGeneratorResponse:
    """Compile a request into the response protoc expects."""
    session = CompilationSession.from_request(request, registry)
    return generate_all_files(session)


def _read_request(path: Optional[str]) -> plugin_pb2.CodeGeneratorRequest:
    if path:
        with open(path, "rb") as f:
            data = f.read()
    else:
        data = sys.stdin.buffer.read()
    request = plugin_pb2.CodeGeneratorRequest()
    try:
        request.ParseFromString(data)
    except DecodeError as e:
        raise GeneratorError(f"parsing input proto: {e}") from e
    return request


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="protoc-gen-cgi",
        description="protoc plugin generating Go message code",
    )
    parser.add_argument(
        "--request",
        metavar="PATH",
        help="Read the serialized CodeGeneratorRequest from PATH instead of stdin",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    try:
        request = _read_request(args.request)
        response = generate(request)
    except GeneratorError as e:
        logger.error("error: %s", e)
        return 1

    sys.stdout.buffer.write(response.SerializeToString())
    sys.stdout.buffer.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
