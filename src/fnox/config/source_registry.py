"""Process-wide registry of config file contents, used for diagnostics."""

import threading
from pathlib import Path
from typing import Optional

_lock = threading.Lock()
_sources: dict[Path, str] = {}


def _canonical(path: Path) -> Path:
    try:
        return Path(path).resolve()
    except OSError:
        return Path(path).absolute()


def register(path: Path, content: str) -> None:
    """Remember the text of ``path`` so errors can quote it later."""
    with _lock:
        _sources[_canonical(path)] = content


def get_source(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    with _lock:
        return _sources.get(_canonical(path))


def clear() -> None:
    with _lock:
        _sources.clear()
