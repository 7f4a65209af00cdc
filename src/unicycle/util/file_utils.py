"""Helpers for durable file writes."""

from pathlib import Path


def write_atomic(path: Path, payload: str) -> None:
    """Replace ``path`` with ``payload`` via a temporary sibling and a rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
