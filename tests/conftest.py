from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    # Some pytest import modes may not include the repo root on sys.path,
    # causing imports like `import yolo_nms` to fail.
    repo_root = Path(__file__).resolve().parents[1]
    tests_dir = Path(__file__).resolve().parent
    for p in (str(repo_root), str(tests_dir)):
        if p not in sys.path:
            sys.path.insert(0, p)


_ensure_repo_root_on_syspath()
