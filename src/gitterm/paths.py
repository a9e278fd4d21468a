"""Pure POSIX-style path helpers for the terminal's virtual file tree."""

from __future__ import annotations


def normalize_path(path: str) -> str:
    """Collapse ``.``, ``..`` and empty segments into an absolute path.

    ``..`` at the root stays at the root.

    Examples:
        >>> normalize_path("/a/./b/../c/")
        '/a/c'
        >>> normalize_path("")
        '/'
    """
    out: list[str] = []
    for segment in path.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if out:
                out.pop()
            continue
        out.append(segment)
    return "/" + "/".join(out)


def resolve_path(base: str, rel: str) -> str:
    """Resolve *rel* against the directory *base*."""
    if not rel or rel == "/":
        return "/"
    if rel.startswith("/"):
        return normalize_path(rel)
    return normalize_path(base.rstrip("/") + "/" + rel)
