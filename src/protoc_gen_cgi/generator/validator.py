from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_parser

from protoc_gen_cgi.errors import GeneratorError, GoSourceError

logger = logging.getLogger(__name__)

OPENERS = "({["
CLOSERS = ")}]"

# Line scanner states.
CODE = 0
BLOCK_COMMENT = 1
RAW_STRING = 2


def _first_error(node: Node) -> Optional[Node]:
    if node.is_error or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None


def _go_parser() -> Parser:
    try:
        return get_parser("go")
    except Exception as e:
        raise GeneratorError(f"loading Go parser: {e}") from e


def check_go_source(source: str) -> None:
    """Raise GoSourceError if source does not parse as Go."""
    tree = _go_parser().parse(source.encode("utf-8"))
    root = tree.root_node
    if not root.has_error:
        return
    bad = _first_error(root) or root
    row, col = bad.start_point
    raise GoSourceError(f"bad Go source code was generated: {row + 1}:{col + 1}", source)


def _scan(line: str, state: int) -> Tuple[List[str], int]:
    """Return the delimiters of line outside literals, and the state after it."""
    delims: List[str] = []
    i, n = 0, len(line)
    while i < n:
        c = line[i]
        if state == BLOCK_COMMENT:
            end = line.find("*/", i)
            if end < 0:
                return delims, state
            i, state = end + 2, CODE
            continue
        if state == RAW_STRING:
            end = line.find("`", i)
            if end < 0:
                return delims, state
            i, state = end + 1, CODE
            continue
        if line.startswith("//", i):
            break
        if line.startswith("/*", i):
            i, state = i + 2, BLOCK_COMMENT
            continue
        if c == "`":
            i, state = i + 1, RAW_STRING
            continue
        if c in "\"'":
            i += 1
            while i < n and line[i] != c:
                i += 2 if line[i] == "\\" else 1
            i += 1
            continue
        if c in OPENERS or c in CLOSERS:
            delims.append(c)
        i += 1
    return delims, state


def format_go_source(source: str) -> str:
    """Re-indent source with tabs from its delimiter nesting.

    Each line that leaves delimiters open adds one indentation level, no
    matter how many it opens; the level is dropped once they are all
    closed. Applying this twice gives the same text as applying it once.
    """
    out: List[str] = []
    # Open delimiter counts, one entry per indentation level.
    stack: List[int] = []
    state = CODE
    for raw in source.split("\n"):
        if state != CODE:
            # Continuation of a block comment or raw string.
            line = raw if state == RAW_STRING else raw.rstrip()
            _, state = _scan(raw, state)
            out.append(line)
            continue

        line = raw.strip()
        if not line:
            if out and out[-1] != "":
                out.append("")
            continue

        delims, state = _scan(line, CODE)
        lead = 0
        while lead < len(delims) and delims[lead] in CLOSERS and line[lead] in CLOSERS:
            lead += 1
        for _ in range(lead):
            if stack:
                stack[-1] -= 1
                if stack[-1] == 0:
                    stack.pop()

        level = len(stack)
        if line.startswith("case ") or line.startswith("default:"):
            level = max(level - 1, 0)
        out.append("\t" * level + line)

        opened = 0
        for d in delims[lead:]:
            if d in OPENERS:
                opened += 1
            elif opened:
                opened -= 1
            elif stack:
                stack[-1] -= 1
                if stack[-1] == 0:
                    stack.pop()
        if opened:
            stack.append(opened)

    while out and out[-1] == "":
        out.pop()
    if stack:
        logger.debug("unbalanced delimiters at end of file: %s", stack)
    return "\n".join(out) + "\n"


def validate_go_source(source: str) -> str:
    """Check that source parses, then return it canonically formatted."""
    check_go_source(source)
    formatted = format_go_source(source)
    check_go_source(formatted)
    return formatted
