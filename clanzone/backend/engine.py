"""Eligibility rules and zone argument helpers for claim requests."""

from __future__ import annotations

from typing import Mapping

from .models import Eligibility, Policy


def evaluate(
    actor_group: str | None,
    now: float,
    reference_start: float,
    registry: Mapping[str, bool],
    policy: Policy,
) -> Eligibility:
    """Decide whether a group may claim its zone.

    Checks run from the most specific rejection to the least: membership, allow-list,
    uniqueness, then the activation window.
    """
    if not actor_group:
        return Eligibility.NOT_IN_GROUP
    if policy.allowed_groups and actor_group not in policy.allowed_groups:
        return Eligibility.GROUP_NOT_ALLOWED
    if registry.get(actor_group) is True:
        return Eligibility.ALREADY_CLAIMED
    window = policy.activation_window_seconds
    if window is not None and now - reference_start > window:
        return Eligibility.WINDOW_EXPIRED
    return Eligibility.APPROVED


def build_zone_id(group: str, policy: Policy) -> str:
    return f"{policy.zone_id_prefix}{group}"


def build_zone_flags(group: str, policy: Policy) -> dict[str, str]:
    flags = dict(policy.zone_flags)
    if policy.enter_message:
        flags["enter_message"] = policy.enter_message.format(group=group)
    if policy.leave_message:
        flags["leave_message"] = policy.leave_message.format(group=group)
    return flags


def remaining_window(now: float, reference_start: float, policy: Policy) -> float | None:
    """Seconds left in the activation window, or None when no window is configured."""
    window = policy.activation_window_seconds
    if window is None:
        return None
    return max(0.0, window - (now - reference_start))


def zone_exists_for_group(group: str, zone_ids: list[str]) -> bool:
    return any(group in zone_id for zone_id in zone_ids)
