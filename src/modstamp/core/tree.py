"""Read-only template trees scanned from disk."""

from __future__ import annotations

from collections.abc import Collection, Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from modstamp.core.errors import InvalidManifest


@dataclass(frozen=True)
class TemplateFile:
    path: PurePosixPath
    source: Path

    def read_bytes(self) -> bytes:
        return self.source.read_bytes()


@dataclass(frozen=True)
class TemplateDirectory:
    """A template directory. ``path`` is relative to the scanned root."""

    path: PurePosixPath
    source: Path
    children: tuple[TemplateNode, ...] = ()

    def walk(self) -> Iterator[TemplateNode]:
        """Yield every descendant depth-first, in lexicographic order."""
        for child in self.children:
            yield child
            if isinstance(child, TemplateDirectory):
                yield from child.walk()

    def files(self) -> Iterator[TemplateFile]:
        return (n for n in self.walk() if isinstance(n, TemplateFile))


TemplateNode = TemplateFile | TemplateDirectory


def scan_tree(root: Path, exclude: Collection[Path] = ()) -> TemplateDirectory:
    """Scan the directory at *root* into a :class:`TemplateDirectory`.

    Paths in *exclude* (absolute, or relative to the working directory) are
    skipped entirely, and so are directories left empty by excluding them.
    Symlinked directories are rejected so the tree is acyclic.

    Raises:
        InvalidManifest: If *root* is not a directory or holds a symlinked directory.
    """
    if not root.is_dir():
        raise InvalidManifest(f"template subtree {root} is not a directory")
    excluded = {p.resolve() for p in exclude}
    tree, _ = _scan(root, PurePosixPath("."), excluded)
    return tree


def _scan(
    directory: Path, rel: PurePosixPath, excluded: set[Path]
) -> tuple[TemplateDirectory, bool]:
    """Scan *directory*, also reporting whether anything under it was excluded."""
    children: list[TemplateNode] = []
    skipped = False
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if entry.resolve() in excluded:
            skipped = True
            continue
        child_rel = rel / entry.name
        if entry.is_dir():
            if entry.is_symlink():
                raise InvalidManifest(f"symlinked directory {entry} is not supported in templates")
            subtree, subtree_skipped = _scan(entry, child_rel, excluded)
            skipped |= subtree_skipped
            if subtree_skipped and not subtree.children:
                continue
            children.append(subtree)
        elif entry.is_file():
            children.append(TemplateFile(path=child_rel, source=entry))
    return TemplateDirectory(path=rel, source=directory, children=tuple(children)), skipped
