"""uramfs I/O helpers.

Decoding of compiler-service metadata lives in [`parse_package_json()`](golist.py:1).
"""

from __future__ import annotations

from .golist import package_from_json_dict, parse_package_json, read_package_json

__all__ = [
    "package_from_json_dict",
    "parse_package_json",
    "read_package_json",
]
