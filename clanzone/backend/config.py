"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .models import Policy

DEFAULT_ZONE_FLAGS = "nopvp=true,noraid=true,eject=true"


@dataclass(frozen=True)
class BackendSettings:
    server_salt: str
    database_url: str | None
    host: str
    port: int
    host_token_hash: str | None
    bridge_url: str
    collaborator_timeout: float
    log_level: str
    target_kinds: tuple[str, ...]
    prompt_delay: float
    confirm_command: str
    prompt_label: str
    permission_key: str
    wipe_time: float | None
    policy: Policy


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_flags(raw: str) -> dict[str, str]:
    flags: dict[str, str] = {}
    for item in _split_csv(raw):
        key, separator, value = item.partition("=")
        if not separator or not key.strip():
            raise ValueError(f"Invalid zone flag entry: {item!r}")
        flags[key.strip()] = value.strip()
    return flags


def _optional_float(raw: str | None) -> float | None:
    if raw is None or raw.strip().lower() in ("", "none", "off"):
        return None
    return float(raw)


def load_policy() -> Policy:
    return Policy(
        activation_window_seconds=_optional_float(os.getenv("CLANZONE_ACTIVATION_WINDOW", "3600")),
        zone_radius=float(os.getenv("CLANZONE_ZONE_RADIUS", "50")),
        allowed_groups=_split_csv(os.getenv("CLANZONE_ALLOWED_GROUPS", "")),
        zone_flags=_parse_flags(os.getenv("CLANZONE_ZONE_FLAGS", DEFAULT_ZONE_FLAGS)),
        zone_id_prefix=os.getenv("CLANZONE_ZONE_ID_PREFIX", "clansafezone_"),
        enter_message=os.getenv("CLANZONE_ENTER_MESSAGE", "Welcome to {group}'s Safe Zone!"),
        leave_message=os.getenv("CLANZONE_LEAVE_MESSAGE", "Leaving {group}'s Safe Zone."),
        detect_existing_zones=os.getenv("CLANZONE_DETECT_EXISTING_ZONES", "false").lower() == "true",
    )


def load_settings() -> BackendSettings:
    port_raw = os.getenv("CLANZONE_PORT", "8000")
    return BackendSettings(
        server_salt=os.getenv("CLANZONE_SERVER_SALT", "dev-salt"),
        database_url=os.getenv("CLANZONE_DATABASE_URL"),
        host=os.getenv("CLANZONE_HOST", "127.0.0.1"),
        port=int(port_raw),
        host_token_hash=os.getenv("CLANZONE_HOST_TOKEN_HASH") or None,
        bridge_url=os.getenv("CLANZONE_BRIDGE_URL", "http://127.0.0.1:28080"),
        collaborator_timeout=float(os.getenv("CLANZONE_COLLABORATOR_TIMEOUT", "2.0")),
        log_level=os.getenv("CLANZONE_LOG_LEVEL", "INFO").upper(),
        target_kinds=_split_csv(os.getenv("CLANZONE_TARGET_KINDS", "cupboard.tool.deployed")),
        prompt_delay=float(os.getenv("CLANZONE_PROMPT_DELAY", "0.2")),
        confirm_command=os.getenv("CLANZONE_CONFIRM_COMMAND", "clansafezone.create"),
        prompt_label=os.getenv("CLANZONE_PROMPT_LABEL", "Create Safe Zone"),
        permission_key=os.getenv("CLANZONE_PERMISSION_KEY", "clansafezone.use"),
        wipe_time=_optional_float(os.getenv("CLANZONE_WIPE_TIME")),
        policy=load_policy(),
    )
