"""
Generation and validation of the packaging artifacts (desktop entry, AppStream,
RPM spec, Flatpak manifest) around the application.
"""

from .metadata import AppMetadata
from .scaffold import ScaffoldOptions, ScaffoldResult, scaffold
from .validators import ValidationIssue, validate_tree

__all__ = [
    "AppMetadata",
    "ScaffoldOptions",
    "ScaffoldResult",
    "ValidationIssue",
    "scaffold",
    "validate_tree",
]
