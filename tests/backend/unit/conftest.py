from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from clanzone.backend.collaborators import CollaboratorUnavailable, Collaborators
from clanzone.backend.coordinator import ZoneClaimCoordinator
from clanzone.backend.models import Policy
from clanzone.backend.store import InMemoryClaimStore


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@dataclass
class _ScheduledEntry:
    due: float
    delay: float
    callback: Callable[..., Any]
    args: tuple[Any, ...]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    def __init__(self) -> None:
        self.now = 0.0
        self.entries: list[_ScheduledEntry] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _ScheduledEntry:
        entry = _ScheduledEntry(due=self.now + delay, delay=delay, callback=callback, args=args)
        self.entries.append(entry)
        return entry

    @property
    def pending(self) -> list[_ScheduledEntry]:
        return [entry for entry in self.entries if not entry.cancelled]

    async def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted((entry for entry in self.pending if entry.due <= self.now), key=lambda entry: entry.due)
        for entry in due:
            self.entries.remove(entry)
            await entry.callback(*entry.args)


class FakeGroupDirectory:
    def __init__(self) -> None:
        self.groups: dict[int, str | None] = {}
        self.unavailable = False
        self.calls: list[int] = []

    async def resolve_group(self, actor_id: int) -> str | None:
        self.calls.append(actor_id)
        if self.unavailable:
            raise CollaboratorUnavailable("group directory", "not loaded")
        return self.groups.get(actor_id)


class FakeZoneService:
    def __init__(self) -> None:
        self.created: list[tuple[str, tuple[float, float, float], float, dict[str, str]]] = []
        self.erased: list[str] = []
        self.zone_ids: list[str] = []
        self.result = True
        self.error: Exception | None = None

    async def create_or_update_zone(self, zone_id, position, radius, flags) -> bool:
        if self.error is not None:
            raise self.error
        self.created.append((zone_id, position, radius, dict(flags)))
        return self.result

    async def erase_zone(self, zone_id: str) -> None:
        self.erased.append(zone_id)

    async def list_zone_ids(self) -> list[str]:
        return list(self.zone_ids)


class FakePromptUI:
    def __init__(self) -> None:
        self.shown: list[tuple[int, str]] = []
        self.destroyed: list[int] = []
        self.fail_destroy_for: set[int] = set()

    async def show(self, actor_id: int, command: str) -> None:
        self.shown.append((actor_id, command))

    async def destroy(self, actor_id: int) -> None:
        if actor_id in self.fail_destroy_for:
            raise CollaboratorUnavailable("prompt ui", "not loaded")
        self.destroyed.append(actor_id)


@dataclass
class FakePermissionStore:
    denied: set[int] = field(default_factory=set)
    registered: list[str] = field(default_factory=list)
    unavailable: bool = False

    async def has_permission(self, actor_id: int, permission_key: str) -> bool:
        if self.unavailable:
            raise CollaboratorUnavailable("permission store", "not loaded")
        return actor_id not in self.denied

    async def register(self, permission_key: str) -> None:
        if self.unavailable:
            raise CollaboratorUnavailable("permission store", "not loaded")
        self.registered.append(permission_key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store() -> InMemoryClaimStore:
    return InMemoryClaimStore()


@pytest.fixture
def collaborators() -> Collaborators:
    return Collaborators(
        groups=FakeGroupDirectory(),
        zones=FakeZoneService(),
        prompts=FakePromptUI(),
        permissions=FakePermissionStore(),
    )


@pytest.fixture
def build_coordinator(store, collaborators, scheduler, clock) -> Callable[..., ZoneClaimCoordinator]:
    def _build(policy: Policy | None = None, **kwargs: Any) -> ZoneClaimCoordinator:
        return ZoneClaimCoordinator(
            store=store,
            collaborators=collaborators,
            scheduler=scheduler,
            policy=policy if policy is not None else Policy(),
            permission_key="clansafezone.use",
            clock=clock,
            **kwargs,
        )

    return _build
