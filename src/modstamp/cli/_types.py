"""Enums for CLI options."""

from enum import Enum


class OutputFormat(str, Enum):
    """How ``create`` reports its result."""

    TEXT = "text"
    JSON = "json"
