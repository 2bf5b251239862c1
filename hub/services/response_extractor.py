"""
Extract the sandbox's final answer from its combined output stream.

The sandbox prints its answer between two sentinel lines:

    __CLAUDE_RESPONSE_START__
    ...answer...
    __CLAUDE_RESPONSE_END__

Everything strictly between them, blank lines removed, is the answer. When
the sentinels are missing the extractor falls back to a degraded heuristic:
take everything after the last tool-invocation line. Stray sentinel lines are
dropped from degraded answers. Both fallback branches are logged as warnings
so operators can see sandboxes that did not emit sentinels.
"""

import re
from enum import Enum
from typing import NamedTuple

from hub.utils.errors import ResponseExtractionError
from hub.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

RESPONSE_START = "__CLAUDE_RESPONSE_START__"
RESPONSE_END = "__CLAUDE_RESPONSE_END__"

TOOL_MARKER = re.compile(r"^(Tool:|Using|Running|Executing)")


class ExtractionMethod(str, Enum):
    SENTINEL = "sentinel"
    TOOL_MARKER = "tool_marker"
    RAW_OUTPUT = "raw_output"


class ExtractedResponse(NamedTuple):
    text: str
    method: ExtractionMethod


def _non_blank(lines: list[str]) -> str:
    return "\n".join(line for line in lines if line.strip())


def _without_sentinels(lines: list[str]) -> str:
    """Degraded answers never carry an unmatched sentinel line."""
    return _non_blank([line for line in lines if line.strip() not in (RESPONSE_START, RESPONSE_END)])


def _between_sentinels(lines: list[str]) -> tuple[bool, list[str]]:
    """Return (found, body) for the first START line followed by an END line."""
    start = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if start is None:
            if stripped == RESPONSE_START:
                start = index
        elif stripped == RESPONSE_END:
            return True, lines[start + 1:index]
    return False, []


def extract_response(output: str) -> ExtractedResponse:
    """
    Apply the extraction protocol to raw sandbox output.

    Pure function of its input. Raises ResponseExtractionError when no
    non-blank answer can be found, so an empty answer never passes silently.
    """
    lines = (output or "").replace("\r\n", "\n").split("\n")

    found, body = _between_sentinels(lines)
    if found:
        text = _non_blank(body)
        if text:
            return ExtractedResponse(text, ExtractionMethod.SENTINEL)
        raise ResponseExtractionError("Sandbox emitted response sentinels with an empty answer")

    last_tool_line = None
    for index, line in enumerate(lines):
        if TOOL_MARKER.match(line):
            last_tool_line = index

    if last_tool_line is not None:
        text = _without_sentinels(lines[last_tool_line + 1:])
        logger.warning(
            "Response sentinels missing; using text after last tool invocation",
            extraction_method=ExtractionMethod.TOOL_MARKER.value,
            tool_line=last_tool_line + 1
        )
        if text:
            return ExtractedResponse(text, ExtractionMethod.TOOL_MARKER)
        raise ResponseExtractionError("No answer found after the last tool invocation")

    # No sentinels and no tool markers: the whole output is taken as the answer
    text = _without_sentinels(lines)
    logger.warning(
        "Response sentinels and tool markers missing; using entire sandbox output",
        extraction_method=ExtractionMethod.RAW_OUTPUT.value,
        output_length=len(output or "")
    )
    if text:
        return ExtractedResponse(text, ExtractionMethod.RAW_OUTPUT)
    raise ResponseExtractionError("Sandbox produced no output")
