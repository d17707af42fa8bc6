"""Template loading, substitution and project composition."""

from modstamp.core.answers import Answers, load_answers, parse_assignments
from modstamp.core.composer import (
    GeneratedProject,
    Plan,
    PlannedFile,
    Transaction,
    check_template,
    compose,
    plan_project,
    write_project,
)
from modstamp.core.config import Settings, available_templates, resolve_template
from modstamp.core.context import SubstitutionContext, build_context, select_variants
from modstamp.core.errors import (
    DestinationBusy,
    DestinationError,
    DestinationNotEmpty,
    InvalidAssignment,
    InvalidManifest,
    InvalidOutputPath,
    IOFailure,
    MalformedPlaceholder,
    ModstampError,
    PlaceholderError,
    UnresolvedPlaceholder,
    ValidationError,
)
from modstamp.core.lock import DestinationLock
from modstamp.core.manifest import (
    MANIFEST_NAME,
    LoaderVariant,
    Manifest,
    TemplateVariable,
    VariableKind,
    load_manifest,
)
from modstamp.core.substitution import Substitution, find_placeholders, substitute, tokenize
from modstamp.core.tree import TemplateDirectory, TemplateFile, scan_tree

__all__ = [
    "MANIFEST_NAME",
    "Answers",
    "DestinationBusy",
    "DestinationError",
    "DestinationLock",
    "DestinationNotEmpty",
    "GeneratedProject",
    "IOFailure",
    "InvalidAssignment",
    "InvalidManifest",
    "InvalidOutputPath",
    "LoaderVariant",
    "MalformedPlaceholder",
    "Manifest",
    "ModstampError",
    "Plan",
    "PlaceholderError",
    "PlannedFile",
    "Settings",
    "Substitution",
    "SubstitutionContext",
    "TemplateDirectory",
    "TemplateFile",
    "TemplateVariable",
    "Transaction",
    "UnresolvedPlaceholder",
    "ValidationError",
    "VariableKind",
    "available_templates",
    "build_context",
    "check_template",
    "compose",
    "find_placeholders",
    "load_answers",
    "load_manifest",
    "parse_assignments",
    "plan_project",
    "resolve_template",
    "scan_tree",
    "select_variants",
    "substitute",
    "tokenize",
    "write_project",
]
