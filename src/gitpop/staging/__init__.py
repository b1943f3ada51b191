"""
Staging state for the current session.

:class:`~gitpop.staging.ledger.StagingLedger` holds the user's selection
and :class:`~gitpop.staging.session.RepositorySession` ties the ledger
to one working directory and the scan, diff, generate and commit steps.
"""

from .ledger import StagingLedger  # noqa: F401
from .session import RepositorySession, SessionState  # noqa: F401
