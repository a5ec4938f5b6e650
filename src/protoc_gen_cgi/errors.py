from __future__ import annotations


class GeneratorError(Exception):
    """Raised for any condition that must abort the whole run.

    Nothing is written to stdout once one of these is raised: the input
    descriptors are assumed valid, so every GeneratorError is either an
    inconsistency in the request or a defect in the generator itself.
    """


class GoSourceError(GeneratorError):
    """Generated text failed to parse as Go."""

    def __init__(self, message: str, source: str):
        self.source = source
        super().__init__(f"{message}\n{number_lines(source)}")


def number_lines(source: str) -> str:
    """Prefix every line with a 5-wide line number and a tab."""
    lines = source.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return "".join(f"{i:5d}\t{line}\n" for i, line in enumerate(lines, start=1))
