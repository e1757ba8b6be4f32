"""
Fleet notification dispatcher.

Runs once per scheduler tick. For every fleet that may still need messages it:

1. Plans: fires the due state transition and queues the deliveries it implies
   (create, reminder, form-up, silent update, reschedule notice, cancellation).
2. Saves the plan. Deliveries are stored as "attempted" BEFORE anything is sent,
   so a crash between saving and sending can only lose a message, never
   duplicate it: the next tick looks the message up by its key before posting.
3. Sends, per destination, in order. The first failure stops that destination
   for this tick; the delivery is retried once its backoff has passed.
4. Saves confirmations.

Each (fleet, channel, kind) has a single delivery row, which is what keeps the
announcement kinds at-most-once.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import sentry_sdk

from core.enums import DeliveryStatus, FleetStatus, NotificationKind
from core.fleets.errors import DeliveryError
from core.fleets.locks import fleet_lock, forget_fleet
from core.fleets.policy import CategoryPolicy
from core.fleets.state import due_transition, is_expired, transition
from core.fleets.types import ANNOUNCEMENT_KINDS, Delivery, DestinationState, Fleet

from .render import render_edit, render_notification
from .scheduler import MAX_DELIVERY_ATTEMPTS, get_retry_delay

logger = logging.getLogger(__name__)

PING_KINDS = (
    NotificationKind.create,
    NotificationKind.reminder,
    NotificationKind.formup,
)

_TRANSITION_PINGS = {
    FleetStatus.reminder_sent: NotificationKind.reminder,
    FleetStatus.forming_up: NotificationKind.formup,
}


def delivery_key(fleet: Fleet, delivery: Delivery) -> str:
    """
    Stable key stamped on every posted message, used to find a post whose
    confirmation was lost. Reschedule notices repeat, so theirs carry the
    time revision.
    """
    key = f"Fleet ref {fleet.id}/{delivery.kind.value}"
    if delivery.kind == NotificationKind.reschedule:
        key += f"/{delivery.time_revision}"
    return key


# =============================================================================
# Planning (pure, no I/O)
# =============================================================================


def _queue(
    destination: DestinationState, kind: NotificationKind, fleet: Fleet
) -> Delivery:
    return destination.add(
        Delivery(
            kind=kind,
            revision=fleet.content_revision,
            time_revision=fleet.time_revision,
        )
    )


def _abandon(delivery: Delivery) -> None:
    delivery.status = DeliveryStatus.abandoned
    delivery.next_attempt_at = None


def _plan_cancellation(fleet: Fleet) -> list[Delivery]:
    """
    Queue a cancel delivery wherever something was (or may have been) posted.

    Pending edits and notices are dropped outright. Pending posts stay pending
    so the delivery phase can check whether they went out; a post that did go
    out must get the cancellation edit too.
    """
    queued = []
    for destination in fleet.destinations.values():
        if destination.has(NotificationKind.cancel):
            continue

        for kind in (NotificationKind.update, NotificationKind.reschedule):
            delivery = destination.get(kind)
            if delivery and delivery.pending:
                _abandon(delivery)

        maybe_posted = any(
            (d := destination.get(kind)) and (d.pending or d.confirmed)
            for kind in ANNOUNCEMENT_KINDS
        )
        if maybe_posted:
            queued.append(_queue(destination, NotificationKind.cancel, fleet))
    return queued


def plan_deliveries(fleet: Fleet, policy: CategoryPolicy, now: datetime) -> list[Delivery]:
    """
    Fire the due transition (if any) and queue the deliveries it implies.

    Mutates the fleet. Returns the newly queued deliveries; an empty list
    with an unchanged status means there is nothing to save.
    """
    if fleet.cancelled:
        return _plan_cancellation(fleet)

    queued = []
    target = due_transition(fleet, policy, now)
    ping_kind = _TRANSITION_PINGS.get(target)
    if target is not None:
        transition(fleet, target)
        logger.info(f"Fleet {fleet.id} -> {target.value}")

    for destination in fleet.destinations.values():
        # Visible fleets are always announced first, even when a ping is already due
        if not fleet.hidden and not destination.has(NotificationKind.create):
            queued.append(_queue(destination, NotificationKind.create, fleet))

        if ping_kind is not None:
            if ping_kind == NotificationKind.formup:
                reminder = destination.get(NotificationKind.reminder)
                if reminder and reminder.pending:
                    _abandon(reminder)
            queued.append(_queue(destination, ping_kind, fleet))
            continue

        rendered = destination.rendered_revision
        if rendered is not None and fleet.content_revision > rendered:
            queued.append(_queue(destination, NotificationKind.update, fleet))

        rendered_time = destination.rendered_time_revision
        if rendered_time is not None and fleet.time_revision > rendered_time:
            queued.append(_queue(destination, NotificationKind.reschedule, fleet))

    return queued


# =============================================================================
# Delivery (transport I/O)
# =============================================================================


def _confirm(delivery: Delivery, fleet: Fleet, message_id: str | None) -> None:
    delivery.status = DeliveryStatus.confirmed
    if message_id is not None:
        delivery.message_id = message_id
    delivery.revision = fleet.content_revision
    delivery.time_revision = fleet.time_revision
    delivery.next_attempt_at = None
    delivery.last_error = None


def _record_failure(
    fleet: Fleet,
    destination: DestinationState,
    delivery: Delivery,
    error: DeliveryError,
    now: datetime,
) -> None:
    delivery.attempts += 1
    delivery.last_error = str(error)[:500]

    if not error.retryable:
        logger.warning(
            f"Giving up on {delivery.kind.value} for fleet {fleet.id} "
            f"in channel {destination.channel_id}: {error}"
        )
        _abandon(delivery)
        return

    delay = get_retry_delay(delivery.attempts - 1)
    delivery.next_attempt_at = now + timedelta(seconds=delay)
    logger.warning(
        f"Failed to send {delivery.kind.value} for fleet {fleet.id} to channel "
        f"{destination.channel_id} (attempt {delivery.attempts}), retrying in {delay:.0f}s: {error}"
    )
    if delivery.attempts == MAX_DELIVERY_ATTEMPTS:
        sentry_sdk.capture_message(
            f"Fleet {fleet.id} {delivery.kind.value} to channel {destination.channel_id} "
            f"failed {MAX_DELIVERY_ATTEMPTS} times: {error}",
            level="error",
        )


async def _post(
    transport,
    fleet: Fleet,
    destination: DestinationState,
    delivery: Delivery,
    message,
    *,
    ping: bool,
    reply_to: str | None = None,
    fresh: bool,
) -> str:
    """Post a message, or adopt the one an earlier unconfirmed attempt posted."""
    key = delivery_key(fleet, delivery)
    if not fresh:
        existing = await transport.find_message(destination.channel_id, key)
        if existing:
            logger.info(
                f"Found earlier {delivery.kind.value} post for fleet {fleet.id}, not re-posting"
            )
            return existing
    return await transport.send_message(
        destination.channel_id, message, ping=ping, key=key, reply_to=reply_to
    )


async def _edit_posted(
    transport, fleet: Fleet, destination: DestinationState, render
) -> None:
    """Edit every posted fleet embed. Messages deleted by hand are skipped."""
    for posted in destination.posted_announcements():
        try:
            await transport.edit_message(
                destination.channel_id, posted.message_id, render(posted.kind)
            )
        except DeliveryError as e:
            if e.retryable:
                raise
            logger.info(
                f"Skipping message {posted.message_id} of fleet {fleet.id}: {e}"
            )


async def _send(
    transport,
    fleet: Fleet,
    policy: CategoryPolicy,
    destination: DestinationState,
    delivery: Delivery,
    fresh: bool,
) -> None:
    kind = delivery.kind

    if fleet.cancelled:
        if kind in ANNOUNCEMENT_KINDS:
            # Never post for a cancelled fleet; only adopt a post that already went out
            existing = None
            if not fresh:
                existing = await transport.find_message(
                    destination.channel_id, delivery_key(fleet, delivery)
                )
            if existing:
                _confirm(delivery, fleet, existing)
            else:
                _abandon(delivery)
            return

        if kind == NotificationKind.cancel:
            if not destination.posted_message_ids():
                _abandon(delivery)
                return
            cancelled = render_notification(NotificationKind.cancel, fleet, policy)
            await _edit_posted(transport, fleet, destination, lambda _kind: cancelled)
            message_id = await _post(
                transport,
                fleet,
                destination,
                delivery,
                cancelled,
                ping=False,
                reply_to=destination.latest_message_id,
                fresh=fresh,
            )
            _confirm(delivery, fleet, message_id)
            return

        _abandon(delivery)
        return

    if kind in ANNOUNCEMENT_KINDS:
        first = destination.announcement is None
        message = render_notification(kind, fleet, policy, first_announcement=first)
        reply_to = None if kind == NotificationKind.create else destination.latest_message_id
        message_id = await _post(
            transport,
            fleet,
            destination,
            delivery,
            message,
            ping=kind in PING_KINDS,
            reply_to=reply_to,
            fresh=fresh,
        )
        _confirm(delivery, fleet, message_id)

    elif kind == NotificationKind.update:
        await _edit_posted(
            transport,
            fleet,
            destination,
            lambda posted_kind: render_edit(posted_kind, fleet, policy),
        )
        _confirm(delivery, fleet, None)

    elif kind == NotificationKind.reschedule:
        message = render_notification(kind, fleet, policy)
        message_id = await _post(
            transport,
            fleet,
            destination,
            delivery,
            message,
            ping=False,
            reply_to=destination.latest_message_id,
            fresh=fresh,
        )
        _confirm(delivery, fleet, message_id)

    else:
        _abandon(delivery)


async def _deliver_destination(
    transport,
    fleet: Fleet,
    policy: CategoryPolicy,
    destination: DestinationState,
    fresh: set[tuple[str, NotificationKind]],
    now: datetime,
) -> dict:
    """Send this destination's pending deliveries in order, stopping at the first failure."""
    sent = failed = 0
    for delivery in destination.pending_deliveries():
        if not delivery.is_due(now):
            break
        try:
            await _send(
                transport,
                fleet,
                policy,
                destination,
                delivery,
                fresh=(destination.channel_id, delivery.kind) in fresh,
            )
        except DeliveryError as e:
            _record_failure(fleet, destination, delivery, e, now)
            failed += 1
            if delivery.pending:
                break
            continue
        if delivery.confirmed:
            sent += 1
    return {"sent": sent, "failed": failed}


# =============================================================================
# Per-fleet processing and the tick
# =============================================================================


async def process_fleet(store, transport, fleet_id: int, now: datetime) -> dict:
    """
    Plan, persist and deliver everything due for one fleet.

    Raises:
        PersistenceError: If the plan could not be saved (nothing is sent)
                          or confirmations could not be saved
    """
    async with fleet_lock(fleet_id):
        fleet = await store.load_fleet(fleet_id)
        if fleet is None or is_expired(fleet, now):
            return {"sent": 0, "failed": 0}

        policy = await store.get_category_policy(fleet.category_id)
        if policy is None:
            logger.warning(f"Fleet {fleet_id} belongs to missing category {fleet.category_id}")
            return {"sent": 0, "failed": 0}

        status_before = fleet.status
        snapshot = _delivery_snapshot(fleet)
        queued = plan_deliveries(fleet, policy, now)
        if queued or fleet.status != status_before or _delivery_snapshot(fleet) != snapshot:
            await store.save_fleet(fleet)

        if not fleet.has_pending_deliveries():
            return {"sent": 0, "failed": 0}

        fresh = {
            (channel_id, delivery.kind)
            for channel_id, destination in fleet.destinations.items()
            for delivery in queued
            if destination.get(delivery.kind) is delivery
        }
        results = await asyncio.gather(
            *(
                _deliver_destination(transport, fleet, policy, destination, fresh, now)
                for destination in fleet.destinations.values()
            )
        )
        await store.save_fleet(fleet)

    return {
        "sent": sum(r["sent"] for r in results),
        "failed": sum(r["failed"] for r in results),
    }


def _delivery_snapshot(fleet: Fleet) -> list[tuple]:
    return [
        (channel_id, kind, delivery.status)
        for channel_id, destination in fleet.destinations.items()
        for kind, delivery in destination.deliveries.items()
    ]


async def run_dispatch_tick(store, transport, now: datetime | None = None) -> dict:
    """
    One dispatcher pass over every fleet that may still need messages.

    Fleets are processed concurrently and independently: a failure on one is
    logged and reported, and never stops the others.

    Returns:
        Dict with counts: {"fleets": n, "sent": n, "failed": n, "errors": n}
    """
    now = now or datetime.now(timezone.utc)
    candidates = await store.load_fleets_with_pending_work(now)

    async def _process(fleet_id: int) -> dict:
        try:
            return await process_fleet(store, transport, fleet_id, now)
        except Exception as e:
            logger.error(f"Dispatch failed for fleet {fleet_id}: {e}")
            sentry_sdk.capture_exception(e)
            return {"sent": 0, "failed": 0, "error": str(e)}

    results = await asyncio.gather(*(_process(fleet.id) for fleet in candidates))

    for fleet in candidates:
        if fleet.cancelled and not fleet.has_pending_deliveries():
            forget_fleet(fleet.id)

    summary = {
        "fleets": len(candidates),
        "sent": sum(r["sent"] for r in results),
        "failed": sum(r["failed"] for r in results),
        "errors": sum(1 for r in results if "error" in r),
    }
    if summary["sent"] or summary["failed"] or summary["errors"]:
        logger.info(f"Dispatch tick: {summary}")
    return summary
