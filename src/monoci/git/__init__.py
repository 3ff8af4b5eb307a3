"""Git operations for change-driven package selection."""

from monoci.git.changes import changed_directories, changed_files, parse_status_output
from monoci.git.refs import current_head, ensure_checkout, ensure_fetched

__all__ = [
    "changed_directories",
    "changed_files",
    "current_head",
    "ensure_checkout",
    "ensure_fetched",
    "parse_status_output",
]
