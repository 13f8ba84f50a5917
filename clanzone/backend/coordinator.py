"""End-to-end handling of the create-zone confirm command."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import defaultdict
from typing import Awaitable, Callable, TypeVar

from .collaborators import CollaboratorUnavailable, Collaborators
from .engine import (
    build_zone_flags,
    build_zone_id,
    evaluate,
    remaining_window,
    zone_exists_for_group,
)
from .models import (
    CLAIM_MESSAGES,
    ClaimOutcome,
    ClaimRecord,
    ClaimStatus,
    Eligibility,
    Policy,
    Position,
    ZoneRequest,
)
from .scheduler import ScheduledHandle, Scheduler
from .store import ClaimStore

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_REJECTIONS: dict[Eligibility, ClaimStatus] = {
    Eligibility.NOT_IN_GROUP: ClaimStatus.NOT_IN_GROUP,
    Eligibility.GROUP_NOT_ALLOWED: ClaimStatus.GROUP_NOT_ALLOWED,
    Eligibility.ALREADY_CLAIMED: ClaimStatus.ALREADY_CLAIMED,
    Eligibility.WINDOW_EXPIRED: ClaimStatus.WINDOW_EXPIRED,
}


def _outcome(status: ClaimStatus) -> ClaimOutcome:
    return ClaimOutcome(status=status, message=CLAIM_MESSAGES[status])


def _created_message(erase_in_seconds: float | None) -> str:
    message = CLAIM_MESSAGES[ClaimStatus.CREATED]
    if erase_in_seconds is None:
        return message
    minutes = max(1, math.ceil(erase_in_seconds / 60))
    unit = "minute" if minutes == 1 else "minutes"
    return f"{message} Protection will expire in {minutes} {unit}."


class ZoneClaimCoordinator:
    def __init__(
        self,
        store: ClaimStore,
        collaborators: Collaborators,
        scheduler: Scheduler,
        policy: Policy,
        permission_key: str,
        collaborator_timeout: float = 2.0,
        wipe_time: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._collaborators = collaborators
        self._scheduler = scheduler
        self.policy = policy
        self._permission_key = permission_key
        self._timeout = collaborator_timeout
        self._configured_wipe_time = wipe_time
        self._clock = clock
        self._reference_start: float | None = None
        self._group_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._erase_handles: dict[str, ScheduledHandle] = {}

    @property
    def reference_start(self) -> float:
        if self._reference_start is None:
            raise RuntimeError("ZoneClaimCoordinator.start() has not been called")
        return self._reference_start

    async def start(self) -> None:
        """Establish the wipe reference point and register the permission key."""
        if self._configured_wipe_time is not None:
            self._reference_start = self._configured_wipe_time
        else:
            stored = self._store.get_wipe_time()
            if stored is None:
                stored = self._clock()
                self._store.set_wipe_time(stored)
            self._reference_start = stored
        _LOGGER.info("Claim window reference start is %.0f", self._reference_start)

        try:
            await self._call(self._collaborators.permissions.register(self._permission_key))
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Permission %s not registered: %s", self._permission_key, exc)

    async def request_claim(self, actor_id: int, position: Position) -> ClaimOutcome:
        try:
            permitted = await self._call(
                self._collaborators.permissions.has_permission(actor_id, self._permission_key)
            )
            if not permitted:
                return _outcome(ClaimStatus.NOT_PERMITTED)
            group = await self._call(self._collaborators.groups.resolve_group(actor_id))
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Claim by %s rejected: %s", actor_id, exc)
            return _outcome(ClaimStatus.COLLABORATOR_UNAVAILABLE)

        if not group:
            return _outcome(ClaimStatus.NOT_IN_GROUP)

        async with self._group_locks[group]:
            request = ZoneRequest(actor_id=actor_id, group=group, position=position, requested_at=self._clock())
            return await self._claim_for_group(request)

    async def prompt_visible(self, actor_id: int) -> bool:
        """Cosmetic pre-check so the button is never shown to actors who cannot succeed."""
        try:
            if not await self._call(
                self._collaborators.permissions.has_permission(actor_id, self._permission_key)
            ):
                return False
            group = await self._call(self._collaborators.groups.resolve_group(actor_id))
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Hiding create-zone prompt for %s: %s", actor_id, exc)
            return False
        try:
            registry = self._store.registry()
        except Exception:  # pylint: disable=broad-exception-caught
            _LOGGER.error("Claim registry unreadable, hiding create-zone prompt", exc_info=True)
            return False
        verdict = evaluate(group, self._clock(), self.reference_start, registry, self.policy)
        return verdict is Eligibility.APPROVED

    async def on_new_wipe(self, now: float | None = None) -> int:
        self._cancel_erasures()
        removed = self._store.clear_claims()
        self._reference_start = self._clock() if now is None else now
        self._store.set_wipe_time(self._reference_start)
        _LOGGER.info("New wipe: cleared %d claims", removed)
        return removed

    def claims(self) -> list[ClaimRecord]:
        return self._store.list_claims()

    def claim_for(self, group: str) -> ClaimRecord | None:
        return self._store.get_claim(group)

    def pending_erasures(self) -> list[str]:
        return sorted(self._erase_handles)

    def shutdown(self) -> None:
        self._cancel_erasures()

    async def _claim_for_group(self, request: ZoneRequest) -> ClaimOutcome:
        group = request.group
        try:
            registry = self._store.registry()
        except Exception:  # pylint: disable=broad-exception-caught
            _LOGGER.error("Claim registry unreadable, rejecting claim by %s", group, exc_info=True)
            return _outcome(ClaimStatus.STORE_UNAVAILABLE)
        verdict = evaluate(group, request.requested_at, self.reference_start, registry, self.policy)
        if verdict is not Eligibility.APPROVED:
            return _outcome(_REJECTIONS[verdict])

        zone_id = build_zone_id(group, self.policy)
        zones = self._collaborators.zones
        try:
            if self.policy.detect_existing_zones:
                existing = await self._call(zones.list_zone_ids())
                if zone_exists_for_group(group, existing):
                    _LOGGER.info("Zone for %s already exists on the host", group)
                    return _outcome(ClaimStatus.ALREADY_CLAIMED)
            created = await self._call(
                zones.create_or_update_zone(
                    zone_id, request.position, self.policy.zone_radius, build_zone_flags(group, self.policy)
                )
            )
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Zone %s not created: %s", zone_id, exc)
            return _outcome(ClaimStatus.COLLABORATOR_UNAVAILABLE)
        if not created:
            _LOGGER.error("Zone service refused to create %s", zone_id)
            return _outcome(ClaimStatus.ZONE_SERVICE_FAILURE)

        record = ClaimRecord(
            group=group,
            zone_id=zone_id,
            actor_id=request.actor_id,
            position=request.position,
            radius=self.policy.zone_radius,
            claimed_at=request.requested_at,
        )
        try:
            recorded = self._store.record_claim(record)
        except Exception:  # pylint: disable=broad-exception-caught
            _LOGGER.error("Claim for %s not recorded, removing zone %s", group, zone_id, exc_info=True)
            await self._rollback_zone(zone_id)
            return _outcome(ClaimStatus.STORE_UNAVAILABLE)
        if not recorded:
            # Another process committed this group's claim first; its erase timer owns the zone.
            _LOGGER.warning("Group %s was claimed concurrently, keeping the earlier claim", group)
            return _outcome(ClaimStatus.ALREADY_CLAIMED)

        erase_in = remaining_window(self._clock(), self.reference_start, self.policy)
        if erase_in is not None:
            self._schedule_erase(group, zone_id, erase_in)
        _LOGGER.info("Group %s claimed zone %s (actor %s)", group, zone_id, request.actor_id)
        return ClaimOutcome(
            status=ClaimStatus.CREATED,
            message=_created_message(erase_in),
            zone_id=zone_id,
            erase_in_seconds=erase_in,
        )

    async def _rollback_zone(self, zone_id: str) -> None:
        try:
            await self._call(self._collaborators.zones.erase_zone(zone_id))
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Unrecorded zone %s left in place: %s", zone_id, exc)

    def _schedule_erase(self, group: str, zone_id: str, delay: float) -> None:
        previous = self._erase_handles.pop(group, None)
        if previous is not None:
            previous.cancel()
        self._erase_handles[group] = self._scheduler.call_later(delay, self._erase_zone, group, zone_id)

    async def _erase_zone(self, group: str, zone_id: str) -> None:
        self._erase_handles.pop(group, None)
        try:
            await self._call(self._collaborators.zones.erase_zone(zone_id))
        except CollaboratorUnavailable as exc:
            _LOGGER.warning("Zone %s not erased: %s", zone_id, exc)
            return
        _LOGGER.info("Erased zone %s at end of activation window", zone_id)

    def _cancel_erasures(self) -> None:
        for handle in self._erase_handles.values():
            handle.cancel()
        self._erase_handles.clear()

    async def _call(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except CollaboratorUnavailable:
            raise
        except asyncio.TimeoutError as exc:
            raise CollaboratorUnavailable("collaborator", f"no answer within {self._timeout}s") from exc
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise CollaboratorUnavailable("collaborator", repr(exc)) from exc
