from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

from protoc_gen_cgi.errors import GeneratorError


def _render(part) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, bool):
        return "true" if part else "false"
    if isinstance(part, int):
        return str(part)
    if isinstance(part, float):
        return "%g" % part
    raise GeneratorError(f"unknown type in printer: {type(part).__name__}")


class GoPrinter:
    """Line buffer for generated Go text with tab indentation.

    When write_output is off every print is dropped, which lets a file be
    walked for its exported symbols without producing text.
    """

    def __init__(self, write_output: bool = True):
        self.write_output = write_output
        self._lines: List[str] = []
        self._indent = ""

    def p(self, *parts) -> None:
        if not self.write_output:
            return
        text = "".join(_render(part) for part in parts)
        self._lines.append(self._indent + text if text else "")

    def write(self, text: str) -> None:
        """Append pre-rendered text, one buffer line per text line."""
        if not self.write_output:
            return
        if text.endswith("\n"):
            text = text[:-1]
        self._lines.extend(text.split("\n"))

    def indent(self) -> None:
        self._indent += "\t"

    def outdent(self) -> None:
        self._indent = self._indent[:-1]

    @contextmanager
    def indented(self) -> Iterator[None]:
        self.indent()
        try:
            yield
        finally:
            self.outdent()

    def text(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"

    def __len__(self) -> int:
        return len(self._lines)
