"""Domain models for zone claims, policy and request outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

Position = tuple[float, float, float]


class Eligibility(str, Enum):
    APPROVED = "approved"
    NOT_IN_GROUP = "not_in_group"
    GROUP_NOT_ALLOWED = "group_not_allowed"
    ALREADY_CLAIMED = "already_claimed"
    WINDOW_EXPIRED = "window_expired"


class ClaimStatus(str, Enum):
    CREATED = "created"
    NOT_PERMITTED = "not_permitted"
    NOT_IN_GROUP = "not_in_group"
    GROUP_NOT_ALLOWED = "group_not_allowed"
    ALREADY_CLAIMED = "already_claimed"
    WINDOW_EXPIRED = "window_expired"
    COLLABORATOR_UNAVAILABLE = "collaborator_unavailable"
    ZONE_SERVICE_FAILURE = "zone_service_failure"
    STORE_UNAVAILABLE = "store_unavailable"


CLAIM_MESSAGES: dict[ClaimStatus, str] = {
    ClaimStatus.CREATED: "Clan safe zone created.",
    ClaimStatus.NOT_PERMITTED: "You do not have permission to create a safe zone.",
    ClaimStatus.NOT_IN_GROUP: "You must be in a clan to use this feature.",
    ClaimStatus.GROUP_NOT_ALLOWED: "Your clan is not allowed to create a safe zone.",
    ClaimStatus.ALREADY_CLAIMED: "Your clan has already used its safe zone.",
    ClaimStatus.WINDOW_EXPIRED: "The safe zone feature is no longer available.",
    ClaimStatus.COLLABORATOR_UNAVAILABLE: "Safe zones are unavailable right now. Try again later.",
    ClaimStatus.ZONE_SERVICE_FAILURE: "The safe zone could not be created. Try again.",
    ClaimStatus.STORE_UNAVAILABLE: "Safe zone claims cannot be recorded right now. Try again later.",
}


@dataclass(frozen=True)
class Policy:
    activation_window_seconds: float | None = 3600.0
    zone_radius: float = 50.0
    allowed_groups: tuple[str, ...] = ()
    zone_flags: Mapping[str, str] = field(
        default_factory=lambda: {"nopvp": "true", "noraid": "true", "eject": "true"}
    )
    zone_id_prefix: str = "clansafezone_"
    enter_message: str = "Welcome to {group}'s Safe Zone!"
    leave_message: str = "Leaving {group}'s Safe Zone."
    detect_existing_zones: bool = False


@dataclass(frozen=True)
class ZoneRequest:
    actor_id: int
    group: str
    position: Position
    requested_at: float


@dataclass(frozen=True)
class ClaimRecord:
    group: str
    zone_id: str
    actor_id: int
    position: Position
    radius: float
    claimed_at: float


@dataclass(frozen=True)
class ClaimOutcome:
    status: ClaimStatus
    message: str
    zone_id: str | None = None
    erase_in_seconds: float | None = None
