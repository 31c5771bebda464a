from __future__ import annotations

from pathlib import Path
from typing import Dict, Union


def _unquote(value: str) -> str:
    return value.strip().strip("'").strip('"')


def load_class_names(metadata_path: Union[str, Path]) -> Dict[int, str]:
    """
    Read class names from the `names:` block of an Ultralytics-style metadata file.

    Both layouts exported next to ONNX models are accepted:

        names:              names:
          0: person           - person
          1: bicycle          - bicycle

    Parsing stops at the next top-level key, so no YAML dependency is needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.rstrip("\n")
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if stripped == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            if not line[:1].isspace() and not stripped.startswith("-"):
                break

            if stripped.startswith("-"):
                names[len(names)] = _unquote(stripped[1:])
                continue

            # "id: label"
            if ":" not in stripped:
                continue
            left, right = stripped.split(":", 1)
            left = _unquote(left)
            if not left.isdigit():
                continue
            names[int(left)] = _unquote(right)

    return names
