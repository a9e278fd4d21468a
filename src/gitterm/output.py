"""Output budgeting for terminal streams."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gitterm.models import OutputLimit

TRUNCATION_MARKER = "\n[output truncated]\n"


def limit_output(data: str, limit: OutputLimit) -> str:
    """Emit *data* line by line within the byte and line budget of *limit*.

    Every emitted line is newline-terminated. Once the next line would
    exceed either budget, the truncation marker is appended and the rest is
    dropped. Data that already ends in a newline does not gain an extra
    empty line.
    """
    if not data:
        return ""

    lines = data.split("\n")
    if data.endswith("\n"):
        lines.pop()

    chunks: list[str] = []
    written_bytes = 0
    for count, line in enumerate(lines):
        if written_bytes + len(line) > limit.max_bytes or count + 1 > limit.max_lines:
            chunks.append(TRUNCATION_MARKER)
            break
        chunks.append(line + "\n")
        written_bytes += len(line) + 1
    return "".join(chunks)
