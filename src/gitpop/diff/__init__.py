"""
Utilities for assembling diffs for AI consumption.

The :mod:`gitpop.diff.diff_assembler` module builds a bounded unified
diff restricted to the paths staged in the ledger.
"""

from .diff_assembler import (  # noqa: F401
    DEFAULT_CHAR_BUDGET,
    DiffError,
    DiffFailedError,
    NoStagedChangesError,
    build_diff,
    truncate_file_diffs,
)
