"""Result objects for structured snapshot responses.

    from core.result_objects import SnapshotResult
"""

from ._helpers import (
    _abbreviate_label,
    _format_rows_as_text,
    _DEFAULT_SECTOR_ABBR_MAP,
)
from .snapshot import SnapshotResult

__all__ = [
    "SnapshotResult",
    "_abbreviate_label",
    "_format_rows_as_text",
    "_DEFAULT_SECTOR_ABBR_MAP",
]
