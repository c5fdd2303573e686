"""Test package for the garbage-time analysis."""

from __future__ import annotations

import os
import sys
from pathlib import Path


# Charts are rendered off-screen during tests
os.environ.setdefault("MPLBACKEND", "Agg")

# Ensure the src/ directory is importable when running ``pytest`` without
# installing the project in editable mode.
SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.exists():
    src_str = str(SRC_ROOT)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)
