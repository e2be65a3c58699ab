from __future__ import annotations

import os
from pathlib import Path

from declaro.repo.ignore import should_ignore_dir

DECLARATION_MARKERS = ["@Service", "@Mockable", "markers.Service", "markers.Mockable"]


def scan_python_files(root: Path, max_files: int | None = None) -> list[str]:
    """
    Return absolute paths (as strings) of .py files under root, sorted.
    Ignored directories are pruned while walking.
    """
    out: list[str] = []
    for dirpath, dirs, files in os.walk(root):
        root_p = Path(dirpath)

        # prune ignored dirs; sorted for a stable walk order
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        for f in sorted(files):
            if f.endswith(".py"):
                out.append(str((root_p / f).resolve()))
                if max_files is not None and len(out) >= max_files:
                    return out
    return out


def _file_contains_any(path: str, needles: list[str], max_bytes: int = 200_000) -> bool:
    try:
        with open(path, "rb") as f:
            data = f.read(max_bytes)
    except OSError:
        return False
    text = data.decode("utf-8", errors="ignore")
    return any(n in text for n in needles)


def select_declaration_files(py_files: list[str], generated_suffix: str = "_generated.py") -> list[str]:
    """Files that declare at least one @Service / @Mockable interface."""
    return [
        p
        for p in py_files
        if not p.endswith(generated_suffix) and _file_contains_any(p, DECLARATION_MARKERS)
    ]
