"""Built-in project templates shipped with modstamp.

Each subdirectory holding a ``modstamp.toml`` manifest is a template. The
directories are package data, not Python packages.
"""

from __future__ import annotations

from pathlib import Path

BUILTIN_TEMPLATES_DIR = Path(__file__).parent
