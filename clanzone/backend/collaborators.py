"""Contracts for game-host collaborators and their HTTP bridge implementations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol
from urllib.parse import quote

import httpx

from .models import Position


class CollaboratorUnavailable(Exception):
    """Raised when a collaborator cannot be reached or answers with an error."""

    def __init__(self, collaborator: str, detail: str) -> None:
        super().__init__(f"{collaborator} unavailable: {detail}")
        self.collaborator = collaborator
        self.detail = detail


class GroupDirectory(Protocol):
    async def resolve_group(self, actor_id: int) -> str | None:
        """Return the group tag of an actor, or None when ungrouped."""


class ZoneService(Protocol):
    async def create_or_update_zone(
        self, zone_id: str, position: Position, radius: float, flags: Mapping[str, str]
    ) -> bool:
        """Create or update a protected zone and report success."""

    async def erase_zone(self, zone_id: str) -> None:
        """Erase a zone, best effort."""

    async def list_zone_ids(self) -> list[str]:
        """Return the ids of all existing zones."""


class PromptUI(Protocol):
    async def show(self, actor_id: int, command: str) -> None:
        """Show the create-zone button bound to a command."""

    async def destroy(self, actor_id: int) -> None:
        """Remove the create-zone button."""


class PermissionStore(Protocol):
    async def has_permission(self, actor_id: int, permission_key: str) -> bool:
        """Return whether the actor holds a permission."""

    async def register(self, permission_key: str) -> None:
        """Declare a permission with the host."""


@dataclass
class _BridgeClient:
    name: str
    client: httpx.AsyncClient

    async def request(self, method: str, path: str, json: Any | None = None) -> httpx.Response:
        try:
            response = await self.client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CollaboratorUnavailable(self.name, str(exc) or type(exc).__name__) from exc
        return response

    async def request_json(self, method: str, path: str, json: Any | None = None) -> dict[str, Any]:
        response = await self.request(method, path, json=json)
        try:
            payload = response.json()
        except ValueError as exc:
            raise CollaboratorUnavailable(self.name, "invalid JSON response") from exc
        if not isinstance(payload, dict):
            raise CollaboratorUnavailable(self.name, "unexpected response shape")
        return payload


class HttpGroupDirectory:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._bridge = _BridgeClient(name="group directory", client=client)

    async def resolve_group(self, actor_id: int) -> str | None:
        payload = await self._bridge.request_json("GET", f"/groups/{actor_id}")
        group = payload.get("group")
        return group if isinstance(group, str) and group != "" else None


class HttpZoneService:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._bridge = _BridgeClient(name="zone service", client=client)

    async def create_or_update_zone(
        self, zone_id: str, position: Position, radius: float, flags: Mapping[str, str]
    ) -> bool:
        payload = await self._bridge.request_json(
            "PUT",
            f"/zones/{quote(zone_id, safe='')}",
            json={"position": list(position), "radius": radius, "flags": dict(flags)},
        )
        return payload.get("ok") is True

    async def erase_zone(self, zone_id: str) -> None:
        await self._bridge.request("DELETE", f"/zones/{quote(zone_id, safe='')}")

    async def list_zone_ids(self) -> list[str]:
        payload = await self._bridge.request_json("GET", "/zones")
        zone_ids = payload.get("zone_ids", [])
        return [zone_id for zone_id in zone_ids if isinstance(zone_id, str)]


class HttpPromptUI:
    def __init__(self, client: httpx.AsyncClient, label: str) -> None:
        self._bridge = _BridgeClient(name="prompt ui", client=client)
        self._label = label

    async def show(self, actor_id: int, command: str) -> None:
        await self._bridge.request("POST", f"/prompts/{actor_id}", json={"command": command, "label": self._label})

    async def destroy(self, actor_id: int) -> None:
        await self._bridge.request("DELETE", f"/prompts/{actor_id}")


class HttpPermissionStore:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._bridge = _BridgeClient(name="permission store", client=client)

    async def has_permission(self, actor_id: int, permission_key: str) -> bool:
        path = f"/permissions/{actor_id}/{quote(permission_key, safe='')}"
        payload = await self._bridge.request_json("GET", path)
        return payload.get("granted") is True

    async def register(self, permission_key: str) -> None:
        await self._bridge.request("POST", "/permissions", json={"key": permission_key})


@dataclass(frozen=True)
class Collaborators:
    groups: GroupDirectory
    zones: ZoneService
    prompts: PromptUI
    permissions: PermissionStore


def create_http_collaborators(client: httpx.AsyncClient, prompt_label: str) -> Collaborators:
    return Collaborators(
        groups=HttpGroupDirectory(client),
        zones=HttpZoneService(client),
        prompts=HttpPromptUI(client, label=prompt_label),
        permissions=HttpPermissionStore(client),
    )
