"""
Code Artifact Filter for Streamed Chat Output

The chat model is instructed to answer in plain text, but it sometimes emits
code fences or tool-call syntax anyway. The filter strips those from the
stream line by line, so clean text still reaches the client incrementally.
"""

import re

_INLINE_TOOL_CODE = re.compile(r"`tool_code[^`]*`")
_PRINT_CALL = re.compile(r"print\s*\([^)]*\)")
_GET_CALL = re.compile(r"get_\w+\s*\([^)]*\)")
_BARE_CALL_LINE = re.compile(r"^\s*\w+\s*\([^)]*\)\s*$")


class CodeArtifactFilter:
    """
    Line-buffered filter for a text stream.

    Removes fenced code blocks, inline tool_code spans, print()/get_*() calls
    and lines that are nothing but a function call, and collapses runs of
    blank lines to one.

    Usage:
        >>> artifact_filter = CodeArtifactFilter()
        >>> async for chunk in model_stream:
        ...     yield artifact_filter.feed(chunk)
        >>> yield artifact_filter.flush()
    """

    def __init__(self):
        self._buffer = ""
        self._in_fence = False
        self._blank_run = 0
        self.removed_artifacts = 0

    def feed(self, chunk: str) -> str:
        """Accept a chunk; return the cleaned text of every line it completed."""
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return "".join(self._clean_line(line, terminated=True) for line in lines)

    def flush(self) -> str:
        """Clean whatever is left after the stream ends."""
        remainder, self._buffer = self._buffer, ""
        if not remainder:
            return ""
        return self._clean_line(remainder, terminated=False)

    def _clean_line(self, line: str, terminated: bool) -> str:
        if line.lstrip().startswith("```"):
            self._in_fence = not self._in_fence
            self.removed_artifacts += 1
            return ""
        if self._in_fence:
            return ""

        cleaned = _INLINE_TOOL_CODE.sub("", line)
        cleaned = _PRINT_CALL.sub("", cleaned)
        cleaned = _GET_CALL.sub("", cleaned)
        if cleaned != line:
            self.removed_artifacts += 1
        if _BARE_CALL_LINE.match(cleaned):
            self.removed_artifacts += 1
            cleaned = ""
            if not terminated:
                return ""

        if not cleaned.strip():
            self._blank_run += 1
            if self._blank_run > 1:
                return ""
        else:
            self._blank_run = 0

        return cleaned + ("\n" if terminated else "")
