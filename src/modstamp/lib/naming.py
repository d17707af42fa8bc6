"""Name transforms used to derive template variables from user input."""

from __future__ import annotations

from collections.abc import Callable
import re
import unicodedata


def _strip_accents(value: str) -> str:
    decomposed = unicodedata.normalize("NFD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _words(value: str) -> list[str]:
    return re.sub(r"[^A-Za-z0-9]+", " ", _strip_accents(value)).split()


def title_case(value: str) -> str:
    """``"my  cool mod"`` -> ``"My Cool Mod"``."""
    return " ".join(w[:1].upper() + w[1:].lower() for w in value.split())


def pascal_case(value: str) -> str:
    """``"Café Mod!"`` -> ``"CafeMod"``. Accents are dropped, symbols split words.

    A leading digit is prefixed with ``Mod`` so the result is a valid class name.
    """
    result = "".join(w[:1].upper() + w[1:].lower() for w in _words(value))
    if result and result[0].isdigit():
        result = f"Mod{result}"
    return result


def snake_case(value: str) -> str:
    """``"CoolMod Extras"`` -> ``"cool_mod_extras"``."""
    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", _strip_accents(value))
    return "_".join(w.lower() for w in _words(spaced))


def mod_id(value: str) -> str:
    """Lowercase id safe for every loader: ``"My Cool-Mod"`` -> ``"my_cool_mod"``.

    A leading digit is prefixed with ``m`` since loader ids must start with a letter.
    """
    result = "_".join(w.lower() for w in _words(value))
    if result and result[0].isdigit():
        result = f"m{result}"
    return result


def package_name(value: str) -> str:
    """Normalize to a Java package: ``"Com.Example/My-Mod"`` -> ``"com.example.my.mod"``.

    Every segment is forced to start with a letter by prefixing ``x``.
    """
    lowered = _strip_accents(value).lower().strip()
    dotted = re.sub(r"[^a-z0-9.]+", ".", lowered)
    dotted = re.sub(r"\.+", ".", dotted).strip(".")
    if not dotted:
        return ""
    segments = []
    for segment in dotted.split("."):
        if not segment[0].isalpha():
            segment = f"x{segment}"
        segments.append(segment)
    return ".".join(segments)


def package_path(value: str) -> str:
    """``"com.example.mod"`` -> ``"com/example/mod"``."""
    return value.replace(".", "/")


TRANSFORMS: dict[str, Callable[[str], str]] = {
    "title": title_case,
    "pascal": pascal_case,
    "snake": snake_case,
    "mod_id": mod_id,
    "package": package_name,
    "path": package_path,
    "lower": str.lower,
    "upper": str.upper,
}
