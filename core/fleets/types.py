"""
Fleet domain types.

A Fleet carries its own notification state: one DestinationState per channel
snapshotted from the category at creation, each holding one Delivery per
notification kind.
"""

from dataclasses import dataclass, field
from datetime import datetime

from core.enums import DeliveryStatus, FleetStatus, NotificationKind

# Kinds whose message is a full fleet embed (the ones a cancellation edits)
ANNOUNCEMENT_KINDS = (
    NotificationKind.create,
    NotificationKind.reminder,
    NotificationKind.formup,
)

# Order deliveries are sent in, per destination
DELIVERY_ORDER = (
    NotificationKind.create,
    NotificationKind.reminder,
    NotificationKind.formup,
    NotificationKind.update,
    NotificationKind.reschedule,
    NotificationKind.cancel,
)


@dataclass
class Delivery:
    """One outbound notification of one kind to one channel."""

    kind: NotificationKind
    status: DeliveryStatus = DeliveryStatus.attempted
    message_id: str | None = None
    revision: int = 0  # content_revision rendered
    time_revision: int = 0  # time_revision rendered
    attempts: int = 0  # failed send attempts so far
    next_attempt_at: datetime | None = None
    last_error: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.status == DeliveryStatus.confirmed

    @property
    def pending(self) -> bool:
        return self.status == DeliveryStatus.attempted

    def is_due(self, now: datetime) -> bool:
        """Pending and past its backoff window."""
        return self.pending and (
            self.next_attempt_at is None or self.next_attempt_at <= now
        )


@dataclass
class DestinationState:
    """Notification state of one fleet in one channel."""

    channel_id: str
    deliveries: dict[NotificationKind, Delivery] = field(default_factory=dict)

    def get(self, kind: NotificationKind) -> Delivery | None:
        return self.deliveries.get(kind)

    def add(self, delivery: Delivery) -> Delivery:
        self.deliveries[delivery.kind] = delivery
        return delivery

    def has(self, kind: NotificationKind) -> bool:
        """A delivery of this kind was recorded (in any status)."""
        return kind in self.deliveries

    def posted_announcements(self) -> list[Delivery]:
        return [
            d
            for kind in ANNOUNCEMENT_KINDS
            if (d := self.deliveries.get(kind)) and d.confirmed and d.message_id
        ]

    @property
    def announcement(self) -> Delivery | None:
        """The first posted fleet embed."""
        posted = self.posted_announcements()
        return posted[0] if posted else None

    @property
    def latest_message_id(self) -> str | None:
        """Most recent posted fleet embed, used as the reply target for pings."""
        posted = self.posted_announcements()
        return posted[-1].message_id if posted else None

    def posted_message_ids(self) -> list[str]:
        return [d.message_id for d in self.posted_announcements()]

    @property
    def rendered_revision(self) -> int | None:
        """
        Oldest content revision still shown by a posted fleet embed.

        An update delivery edits every posted embed, so it lifts them all to
        its revision. None when nothing has been posted here.
        """
        posted = self.posted_announcements()
        if not posted:
            return None
        update = self.deliveries.get(NotificationKind.update)
        floor = (
            update.revision
            if update and update.status != DeliveryStatus.abandoned
            else 0
        )
        return min(max(d.revision, floor) for d in posted)

    @property
    def rendered_time_revision(self) -> int | None:
        """Newest time revision this channel has been told about."""
        posted = self.posted_announcements()
        if not posted:
            return None
        reschedule = self.deliveries.get(NotificationKind.reschedule)
        revisions = [d.time_revision for d in posted]
        if reschedule and reschedule.status != DeliveryStatus.abandoned:
            revisions.append(reschedule.time_revision)
        return max(revisions)

    def pending_deliveries(self) -> list[Delivery]:
        return [
            self.deliveries[kind]
            for kind in DELIVERY_ORDER
            if kind in self.deliveries and self.deliveries[kind].pending
        ]


@dataclass
class Fleet:
    """A single scheduled group event."""

    category_id: int
    guild_id: str
    name: str
    commander_id: str
    form_up_time: datetime
    id: int | None = None
    status: FleetStatus = FleetStatus.scheduled
    details: dict[str, str] = field(default_factory=dict)
    hidden: bool = False
    disable_reminder: bool = False
    content_revision: int = 0
    time_revision: int = 0
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    destinations: dict[str, DestinationState] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.status == FleetStatus.cancelled

    def destination(self, channel_id: str) -> DestinationState:
        return self.destinations[channel_id]

    def has_pending_deliveries(self) -> bool:
        return any(d.pending_deliveries() for d in self.destinations.values())

    def to_dict(self) -> dict:
        """Serializable view for API responses."""
        return {
            "fleet_id": self.id,
            "category_id": self.category_id,
            "guild_id": self.guild_id,
            "name": self.name,
            "commander_id": self.commander_id,
            "form_up_time": self.form_up_time.isoformat(),
            "status": self.status.value,
            "details": dict(self.details),
            "hidden": self.hidden,
            "disable_reminder": self.disable_reminder,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
