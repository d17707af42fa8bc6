"""Compose a project from a template: plan everything in memory, then write it atomically.

Composition happens in two phases. :func:`plan_project` reads the template,
substitutes every path and file, and returns a :class:`Plan` without touching
the destination, so template errors never leave partial output behind.
:func:`write_project` then materializes the plan inside a :class:`Transaction`
that rolls back every change made during the run if anything fails.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
from pathlib import Path, PurePosixPath
import shutil
import stat
import tempfile
from types import TracebackType

from modstamp.core.context import SubstitutionContext
from modstamp.core.errors import (
    DestinationNotEmpty,
    InvalidManifest,
    InvalidOutputPath,
    IOFailure,
    PlaceholderError,
    UnresolvedPlaceholder,
)
from modstamp.core.lock import DestinationLock
from modstamp.core.manifest import LoaderVariant, Manifest
from modstamp.core.substitution import find_placeholders, substitute
from modstamp.core.tree import TemplateDirectory, TemplateFile, scan_tree

logger = logging.getLogger(__name__)

_ROOT = PurePosixPath(".")


@dataclass(frozen=True)
class PlannedFile:
    """A fully rendered output file.

    Attributes:
        output: Destination-relative output path.
        template: Template-root-relative source path.
        content: Bytes to write.
        mode: Permission bits copied from the template file.
        verbatim: Whether the content was copied without substitution.
    """

    output: PurePosixPath
    template: PurePosixPath
    content: bytes
    mode: int
    verbatim: bool = False


@dataclass(frozen=True)
class Plan:
    manifest: Manifest
    variants: tuple[LoaderVariant, ...]
    files: tuple[PlannedFile, ...]
    directories: tuple[PurePosixPath, ...]
    referenced: frozenset[str]

    @property
    def unused_variables(self) -> list[str]:
        """Variables referenced by no path, file, or used variable's default or derivation."""
        used = set(self.referenced)
        for variable in reversed(self.manifest.variables):
            if variable.name not in used:
                continue
            if variable.derive is not None:
                used.add(variable.derive.source)
            if variable.default is not None:
                used.update(p.name for p in find_placeholders(variable.default))
        return [v.name for v in self.manifest.variables if v.name not in used]


@dataclass(frozen=True)
class GeneratedProject:
    """Outcome of a successful run."""

    destination: Path
    files: tuple[Path, ...]
    directories: tuple[Path, ...]
    variants: tuple[str, ...]
    unused_variables: tuple[str, ...]


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _render_path(
    rel: PurePosixPath, context: SubstitutionContext, template: str
) -> tuple[PurePosixPath, frozenset[str]]:
    try:
        result = substitute(rel.as_posix(), context)
    except PlaceholderError as exc:
        exc.annotate(f"{template} (path name)")
        raise
    text = result.text
    rendered = PurePosixPath(text)
    if (
        not text.strip()
        or "\\" in text
        or "//" in text
        or rendered.is_absolute()
        or ".." in rendered.parts
    ):
        raise InvalidOutputPath(f"template path {template} renders to unsafe path {text!r}")
    return rendered, result.referenced


def _render_file(
    node: TemplateFile, template: PurePosixPath, manifest: Manifest, context: SubstitutionContext
) -> tuple[bytes, bool, frozenset[str]]:
    try:
        raw = node.read_bytes()
    except OSError as exc:
        raise IOFailure(f"cannot read template file {node.source}: {exc}") from exc

    if manifest.is_verbatim(template):
        return raw, True, frozenset()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Copying non-UTF-8 file %s verbatim", template)
        return raw, True, frozenset()

    try:
        result = substitute(text, context)
    except PlaceholderError as exc:
        exc.annotate(template.as_posix())
        raise
    return result.text.encode("utf-8"), False, result.referenced


def _sections(
    manifest: Manifest, variants: Iterable[LoaderVariant]
) -> list[tuple[PurePosixPath, PurePosixPath, list[Path]]]:
    """(subtree, output target, excluded paths) for the common subtree and each variant."""
    root = manifest.root
    common_excludes = [root / v.path for v in manifest.variants]
    common_excludes.append(root / manifest.manifest_name)
    sections = [(manifest.common, _ROOT, common_excludes)]
    sections.extend((v.path, v.target, []) for v in variants)
    return sections


def plan_project(
    manifest: Manifest,
    context: SubstitutionContext,
    variants: Iterable[LoaderVariant] = (),
) -> Plan:
    """Render the common subtree and the selected variant subtrees in memory.

    Variant subtrees that are not selected are never read. Traversal order is
    deterministic: the common subtree first, then variants by name, each walked
    in lexicographic path order.

    Raises:
        MalformedPlaceholder | UnresolvedPlaceholder: Annotated with the template path.
        InvalidOutputPath: If a rendered path escapes the destination.
        InvalidManifest: If two template entries render to the same output path.
    """
    selected = tuple(sorted(variants, key=lambda v: v.name))
    files: list[PlannedFile] = []
    directories: set[PurePosixPath] = set()
    owners: dict[PurePosixPath, PurePosixPath] = {}
    referenced: set[str] = set()

    for subtree, target, excludes in _sections(manifest, selected):
        tree: TemplateDirectory = scan_tree(manifest.root / subtree, excludes)
        if target != _ROOT:
            directories.add(target)
            directories.update(p for p in target.parents if p != _ROOT)

        for node in tree.walk():
            template = subtree / node.path
            out_rel, refs = _render_path(node.path, context, template.as_posix())
            referenced.update(refs)
            output = target / out_rel
            directories.update(p for p in output.parents if p != _ROOT)

            if isinstance(node, TemplateDirectory):
                directories.add(output)
                continue

            if output in owners:
                raise InvalidManifest(
                    f"template files {owners[output]} and {template} both render to {output}"
                )
            owners[output] = template
            content, verbatim, refs = _render_file(node, template, manifest, context)
            referenced.update(refs)
            mode = stat.S_IMODE(node.source.stat().st_mode)
            files.append(PlannedFile(output, template, content, mode, verbatim))

    clashes = sorted(set(owners) & directories)
    if clashes:
        raise InvalidManifest(
            f"template file {owners[clashes[0]]} renders to {clashes[0]}, which is also a directory"
        )

    logger.info(
        "Planned %d files in %d directories from template %r (variants: %s)",
        len(files),
        len(directories),
        manifest.name,
        ", ".join(v.name for v in selected) or "none",
    )
    return Plan(
        manifest=manifest,
        variants=selected,
        files=tuple(files),
        directories=tuple(sorted(directories, key=lambda p: p.parts)),
        referenced=frozenset(referenced),
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


class Transaction:
    """Journal of filesystem changes made during one run, rolled back on failure.

    Created directories and files are removed newest first. Files that existed
    before the run are backed up before being overwritten and restored.
    """

    def __init__(self, destination: Path) -> None:
        self.destination = destination
        self.created_dirs: list[Path] = []
        self.created_files: list[Path] = []
        self.backups: list[tuple[Path, Path]] = []
        self._backup_dir: Path | None = None

    def __enter__(self) -> Transaction:
        try:
            self.make_dir(self.destination)
        except BaseException:
            self.rollback()
            raise
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.commit()
        else:
            logger.warning("Rolling back %s after %s", self.destination, exc_type.__name__)
            self.rollback()

    def make_dir(self, path: Path) -> None:
        missing: list[Path] = []
        current = path
        while not current.exists():
            missing.append(current)
            current = current.parent
        for directory in reversed(missing):
            directory.mkdir()
            self.created_dirs.append(directory)

    def write_file(self, path: Path, content: bytes, mode: int) -> None:
        self.make_dir(path.parent)
        if path.exists() or path.is_symlink():
            self._backup(path)
        else:
            self.created_files.append(path)
        path.write_bytes(content)
        path.chmod(mode)

    def _backup(self, path: Path) -> None:
        if self._backup_dir is None:
            self._backup_dir = Path(tempfile.mkdtemp(prefix="modstamp-backup-"))
        backup = self._backup_dir / str(len(self.backups))
        shutil.copy2(path, backup)
        self.backups.append((path, backup))
        logger.debug("Backed up %s", path)

    def _discard_backups(self) -> None:
        if self._backup_dir is not None:
            shutil.rmtree(self._backup_dir, ignore_errors=True)
            self._backup_dir = None

    def commit(self) -> None:
        self._discard_backups()

    def rollback(self) -> None:
        restored = True
        for original, backup in reversed(self.backups):
            try:
                shutil.copy2(backup, original)
            except OSError as exc:
                restored = False
                logger.error("Could not restore %s from %s: %s", original, backup, exc)
        for path in reversed(self.created_files):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Could not remove %s: %s", path, exc)
        for directory in reversed(self.created_dirs):
            try:
                directory.rmdir()
            except OSError as exc:
                logger.error("Could not remove directory %s: %s", directory, exc)
        logger.debug(
            "Rolled back %d files, %d directories, %d overwrites",
            len(self.created_files),
            len(self.created_dirs),
            len(self.backups),
        )
        if restored:
            self._discard_backups()
        else:
            logger.error("Backups kept in %s", self._backup_dir)


def _check_destination(destination: Path, overwrite: bool) -> None:
    if not destination.exists():
        return
    if not destination.is_dir():
        raise DestinationNotEmpty(f"destination {destination} exists and is not a directory")
    if not overwrite and any(destination.iterdir()):
        raise DestinationNotEmpty(
            f"destination {destination} already exists and is not empty "
            "(pass --overwrite to write into it)"
        )


def _check_no_symlinks(destination: Path, plan: Plan) -> None:
    """Refuse to write through symlinks already present under *destination*."""
    checked: set[PurePosixPath] = set()
    for output in [*plan.directories, *(f.output for f in plan.files)]:
        rel = _ROOT
        for part in output.parts:
            rel = rel / part
            if rel in checked:
                continue
            checked.add(rel)
            path = destination / rel
            if path.is_symlink():
                raise DestinationNotEmpty(
                    f"destination {destination} has a symlink at {rel}, "
                    "refusing to write through it"
                )
            if not path.exists():
                break


def write_project(
    plan: Plan,
    destination: Path | str,
    *,
    overwrite: bool = False,
    lock_dir: Path | None = None,
) -> GeneratedProject:
    """Write *plan* under *destination*, all or nothing.

    Raises:
        DestinationBusy: If another run holds the destination.
        DestinationNotEmpty: If the destination has content and *overwrite* is false.
            Also raised when an output path would pass through an existing symlink.
        IOFailure: If a write fails. Every change made by the run is rolled back.
    """
    destination = Path(destination)
    with DestinationLock(destination, lock_dir):
        _check_destination(destination, overwrite)
        if destination.is_dir():
            _check_no_symlinks(destination, plan)
        try:
            with Transaction(destination) as txn:
                for directory in plan.directories:
                    txn.make_dir(destination / directory)
                for planned in plan.files:
                    txn.write_file(destination / planned.output, planned.content, planned.mode)
        except OSError as exc:
            raise IOFailure(f"failed writing project to {destination}: {exc}") from exc

    logger.info("Wrote %d files to %s", len(plan.files), destination)
    return GeneratedProject(
        destination=destination,
        files=tuple(destination / f.output for f in plan.files),
        directories=tuple(destination / d for d in plan.directories),
        variants=tuple(v.name for v in plan.variants),
        unused_variables=tuple(plan.unused_variables),
    )


def compose(
    manifest: Manifest,
    context: SubstitutionContext,
    variants: Iterable[LoaderVariant],
    destination: Path | str,
    *,
    overwrite: bool = False,
    lock_dir: Path | None = None,
) -> GeneratedProject:
    """Plan and write a project in one call."""
    plan = plan_project(manifest, context, variants)
    return write_project(plan, destination, overwrite=overwrite, lock_dir=lock_dir)


def check_template(manifest: Manifest) -> list[PlaceholderError]:
    """Scan every path and file of the template, including all variants.

    Placeholders are checked against the declared variables rather than a
    resolved context, so a template that only needs user input is valid.
    Returns every problem found, in traversal order.
    """
    declared = {v.name for v in manifest.variables}
    problems: list[PlaceholderError] = []

    def scan(text: str, where: str) -> None:
        try:
            placeholders = find_placeholders(text)
        except PlaceholderError as exc:
            problems.append(exc.annotate(where))
            return
        problems.extend(
            UnresolvedPlaceholder(p.name, token=p.token, line=p.line, column=p.column, path=where)
            for p in placeholders
            if p.name not in declared
        )

    variants = sorted(manifest.variants, key=lambda v: v.name)
    for subtree, _target, excludes in _sections(manifest, variants):
        tree = scan_tree(manifest.root / subtree, excludes)
        for node in tree.walk():
            template = subtree / node.path
            scan(node.path.as_posix(), f"{template} (path name)")
            if isinstance(node, TemplateDirectory) or manifest.is_verbatim(template):
                continue
            try:
                text = node.read_bytes().decode("utf-8")
            except UnicodeDecodeError:
                continue
            except OSError as exc:
                raise IOFailure(f"cannot read template file {node.source}: {exc}") from exc
            scan(text, template.as_posix())

    logger.debug("Checked template %r: %d problem(s)", manifest.name, len(problems))
    return problems
