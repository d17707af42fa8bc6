"""Utility libraries for modstamp."""

from modstamp.lib.naming import TRANSFORMS, mod_id, package_name, package_path, pascal_case

__all__ = ["TRANSFORMS", "mod_id", "package_name", "package_path", "pascal_case"]
