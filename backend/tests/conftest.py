"""
backend/tests/conftest.py

Purpose:
    Put backend/ (for `app.*`) and the repository root (for `tools.*`) on
    sys.path so tests run from either directory without an install.
"""

from __future__ import annotations

import sys
from pathlib import Path

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]
_REPO_ROOT = _THIS_FILE.parents[2]

for candidate in (str(_BACKEND_DIR), str(_REPO_ROOT)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

