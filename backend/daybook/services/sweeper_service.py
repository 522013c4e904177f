# Overview: Forgotten-closing sweeper; closes past days an operator never closed.

"""
Forgotten-Closing Sweeper

WHY: Operators forget to close. Every past day with activity must end up
with exactly one closing, otherwise the next day's reconciliation starts
from an unfrozen ledger.

DESIGN:
- Candidates: register-local days strictly before today with at least one
  movement or transaction and no closing
- Oldest first, one at a time, each in its own commit
- cash_real = cash_expected, closed_by = "system", auto_closed = True
- A day closed concurrently by another session is skipped, not an error
- A persistence failure stops the sweep so later days are never closed
  ahead of an earlier open one
"""

from __future__ import annotations

import logging
from datetime import date

from .closing_service import AlreadyClosedError, close_day, open_days_before
from .context import RegisterContext

logger = logging.getLogger(__name__)


def find_forgotten_days(context: RegisterContext) -> list[date]:
    """Past days with activity and no closing, oldest first."""
    return open_days_before(context, context.today())


def sweep_forgotten_closings(context: RegisterContext) -> int:
    """
    Auto-close every forgotten day of the register.

    Returns:
        Number of days closed by this call (0 when nothing was pending)
    """
    closed = 0
    for day in find_forgotten_days(context):
        try:
            close_day(context, day, auto=True)
        except AlreadyClosedError:
            logger.info("Day %s of register %s was closed concurrently", day, context.register_id)
            continue
        closed += 1

    if closed:
        logger.info("Auto-closed %d forgotten day(s) for register %s", closed, context.register_id)
    return closed
