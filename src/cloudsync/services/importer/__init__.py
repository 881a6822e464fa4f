"""Importer package.

Re-exports all public symbols::

    from cloudsync.services.importer import Importer, ImporterConfig
"""

from .configs import ImporterConfig
from .service import Importer, merge_values, parse_policy


__all__ = [
    "Importer",
    "ImporterConfig",
    "merge_values",
    "parse_policy",
]
