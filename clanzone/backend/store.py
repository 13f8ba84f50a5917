"""Persistence interfaces and implementations for zone claims."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from clanzone.backend.models import ClaimRecord


class ClaimStore(Protocol):
    def registry(self) -> dict[str, bool]:
        """Return the group -> claimed mapping."""

    def get_claim(self, group: str) -> ClaimRecord | None:
        """Return the claim recorded for a group, if any."""

    def list_claims(self) -> list[ClaimRecord]:
        """Return all recorded claims ordered by claim time."""

    def record_claim(self, record: ClaimRecord) -> bool:
        """Persist a claim. Return False when the group already had one."""

    def clear_claims(self) -> int:
        """Remove every claim and return how many were removed."""

    def get_wipe_time(self) -> float | None:
        """Return the persisted reference start of the current wipe."""

    def set_wipe_time(self, wipe_time: float) -> None:
        """Persist the reference start of the current wipe."""


@dataclass
class InMemoryClaimStore:
    def __post_init__(self) -> None:
        self._claims: dict[str, ClaimRecord] = {}
        self._wipe_time: float | None = None

    def registry(self) -> dict[str, bool]:
        return {group: True for group in self._claims}

    def get_claim(self, group: str) -> ClaimRecord | None:
        return self._claims.get(group)

    def list_claims(self) -> list[ClaimRecord]:
        return sorted(self._claims.values(), key=lambda record: record.claimed_at)

    def record_claim(self, record: ClaimRecord) -> bool:
        if record.group in self._claims:
            return False
        self._claims[record.group] = record
        return True

    def clear_claims(self) -> int:
        removed = len(self._claims)
        self._claims.clear()
        return removed

    def get_wipe_time(self) -> float | None:
        return self._wipe_time

    def set_wipe_time(self, wipe_time: float) -> None:
        self._wipe_time = wipe_time


@dataclass
class PostgresClaimStore:
    database_url: str

    def _connect(self) -> Any:
        import psycopg

        return psycopg.connect(self.database_url)

    def registry(self) -> dict[str, bool]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT group_tag FROM zone_claims", ())
                rows = cur.fetchall()
        return {row[0]: True for row in rows}

    def get_claim(self, group: str) -> ClaimRecord | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT group_tag, zone_id, actor_id, pos_x, pos_y, pos_z, radius, claimed_at
                    FROM zone_claims
                    WHERE group_tag = %s
                    """,
                    (group,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return _record_from_row(row)

    def list_claims(self) -> list[ClaimRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT group_tag, zone_id, actor_id, pos_x, pos_y, pos_z, radius, claimed_at
                    FROM zone_claims
                    ORDER BY claimed_at
                    """,
                    (),
                )
                rows = cur.fetchall()
        return [_record_from_row(row) for row in rows]

    def record_claim(self, record: ClaimRecord) -> bool:
        x, y, z = record.position
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO zone_claims (group_tag, zone_id, actor_id, pos_x, pos_y, pos_z, radius, claimed_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (group_tag) DO NOTHING
                    """,
                    (
                        record.group,
                        record.zone_id,
                        record.actor_id,
                        x,
                        y,
                        z,
                        record.radius,
                        datetime.fromtimestamp(record.claimed_at, tz=timezone.utc),
                    ),
                )
                inserted = cur.rowcount == 1
            conn.commit()
        return inserted

    def clear_claims(self) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM zone_claims", ())
                removed = cur.rowcount
            conn.commit()
        return max(removed, 0)

    def get_wipe_time(self) -> float | None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT started_at FROM zone_wipe WHERE id = 1", ())
                row = cur.fetchone()
        if row is None:
            return None
        started_at = row[0]
        return started_at.timestamp() if isinstance(started_at, datetime) else float(started_at)

    def set_wipe_time(self, wipe_time: float) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO zone_wipe (id, started_at)
                    VALUES (1, %s)
                    ON CONFLICT (id) DO UPDATE SET started_at = EXCLUDED.started_at
                    """,
                    (datetime.fromtimestamp(wipe_time, tz=timezone.utc),),
                )
            conn.commit()


def _record_from_row(row: tuple) -> ClaimRecord:
    group, zone_id, actor_id, x, y, z, radius, claimed_at = row
    claimed_ts = claimed_at.timestamp() if isinstance(claimed_at, datetime) else float(claimed_at)
    return ClaimRecord(
        group=group,
        zone_id=zone_id,
        actor_id=int(actor_id),
        position=(float(x), float(y), float(z)),
        radius=float(radius),
        claimed_at=claimed_ts,
    )


def create_store(database_url: str | None) -> ClaimStore:
    if database_url:
        return PostgresClaimStore(database_url=database_url)
    return InMemoryClaimStore()
