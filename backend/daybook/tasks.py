"""
Background tasks.

The forgotten-closing sweep runs a few seconds after an operator session
starts so it never delays login.
"""

import logging
from datetime import date

from celery import shared_task
from flask import current_app

from .services import register_service, repair_service, sweeper_service
from .services.context import ActingAs, RegisterContext, SYSTEM_ACTOR

logger = logging.getLogger(__name__)

# (tenant_id, register_id, session_key, business_day) already queued in this process
_scheduled_sessions: set[tuple[str, str, str, date]] = set()


@shared_task(name="daybook.sweep_forgotten_closings")
def sweep_forgotten_closings_task(tenant_id: str, register_id: str, acting_as: dict | None = None) -> int:
    """Repair then auto-close forgotten days of one register."""
    actor = ActingAs.from_dict(acting_as) if acting_as else SYSTEM_ACTOR
    context = register_service.build_context(tenant_id, register_id, actor)

    relocked = repair_service.repair_closings(tenant_id, register_id)
    if relocked:
        logger.warning("Relocked %d transaction(s) on register %s before sweeping", relocked, register_id)

    return sweeper_service.sweep_forgotten_closings(context)


def schedule_sweep(context: RegisterContext, session_key: str, delay: int | None = None):
    """
    Queue the sweep once per operator session and business day.

    The key only counts as scheduled once the broker accepted the task, so a
    failed enqueue is retried on the next session start. Keys of earlier
    business days of the same register are dropped.

    Returns the Celery result, or None if this session was already scheduled.
    """
    today = context.today()
    _scheduled_sessions.difference_update({
        k for k in _scheduled_sessions
        if k[:2] == (context.tenant_id, context.register_id) and k[3] < today
    })

    key = (context.tenant_id, context.register_id, session_key, today)
    if key in _scheduled_sessions:
        return None

    countdown = current_app.config.get("SWEEP_DELAY_SECONDS", 5) if delay is None else delay
    logger.info("Scheduling forgotten-closing sweep for register %s in %ss", context.register_id, countdown)
    result = sweep_forgotten_closings_task.apply_async(
        args=[context.tenant_id, context.register_id, context.acting_as.to_dict()],
        countdown=countdown,
    )
    _scheduled_sessions.add(key)
    return result
