"""Exporter service package.

Re-exports all public symbols::

    from cloudsync.services.exporter import Exporter, ExporterConfig
"""

from .configs import ExporterConfig
from .service import EPOCH, Exporter, format_watermark


__all__ = [
    "EPOCH",
    "Exporter",
    "ExporterConfig",
    "format_watermark",
]
