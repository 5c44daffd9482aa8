"""
In-memory reservation ledger, optionally seeded from a JSON file.
"""

import asyncio
import json
import logging
from collections import Counter
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Tuple

from pendulum import Date, DateTime

from ..domain.conflict_detector import ConflictDetector
from ..domain.exceptions import ReservationNotFound, SlotConflictError
from ..domain.models import Reservation, ReservationStatus, TimeRange
from ..domain.time_normalizer import TimeNormalizer

logger = logging.getLogger(__name__)


class InMemoryReservationLedger:
    """
    Reservation storage kept in process memory.

    Every write for a provider runs under an ``asyncio.Lock`` scoped to
    ``(provider_id, local date)``, so the conflict re-check and the insert of
    a PENDING hold form one atomic step. A day's lock exists only while a
    write for that day is running or waiting. ``latency`` seconds are awaited
    on each round-trip to behave like remote storage.

    Rows live in process memory; this adapter serves the CLI and tests, and a
    database-backed ledger takes its place in a deployed service.
    """

    def __init__(
        self,
        normalizer: TimeNormalizer,
        reservations: Iterable[Reservation] = (),
        latency: float = 0.0,
    ):
        self.normalizer = normalizer
        self.latency = latency
        self._conflict_detector = ConflictDetector()
        self._rows: Dict[str, Reservation] = {}
        self._locks: Dict[Tuple[str, Date], asyncio.Lock] = {}
        self._lock_users: Counter = Counter()

        for reservation in reservations:
            self._rows[reservation.id] = reservation

    @classmethod
    def load_from_json(cls, data_file: Path, normalizer: TimeNormalizer) -> "InMemoryReservationLedger":
        """
        Seed a ledger from a JSON list of reservations.

        Each entry has ``id``, ``providerId``, ``start`` (ISO-8601; no offset
        means operating timezone), ``duration`` and optional ``status``,
        ``price``, ``notes``, ``location``, ``service`` and ``expiresAt``.
        Invalid entries are skipped with a warning.
        """
        with open(data_file, "r", encoding="utf-8") as f:
            entries = json.load(f)

        reservations: List[Reservation] = []
        for entry in entries:
            try:
                reservations.append(
                    Reservation(
                        id=str(entry["id"]),
                        provider_id=str(entry["providerId"]),
                        start_utc=normalizer.to_utc(entry["start"]),
                        duration_minutes=int(entry["duration"]),
                        status=ReservationStatus(entry.get("status", "CONFIRMED")),
                        price_amount=float(entry.get("price", 0.0)),
                        notes=entry.get("notes", ""),
                        location=entry.get("location"),
                        service_name=entry.get("service", ""),
                        expires_at=normalizer.to_utc(entry["expiresAt"]) if entry.get("expiresAt") else None,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid reservation entry %r: %s", entry, e)

        return cls(normalizer, reservations)

    def save_to_json(self, data_file: Path) -> None:
        """Write all reservations in the seed format, starts in local time."""
        entries = [
            {
                "id": r.id,
                "providerId": r.provider_id,
                "start": self.normalizer.to_local(r.start_utc).to_iso8601_string(),
                "duration": r.duration_minutes,
                "status": r.status.value,
                "price": r.price_amount,
                "notes": r.notes,
                "location": r.location,
                "service": r.service_name,
                "expiresAt": r.expires_at.to_iso8601_string() if r.expires_at else None,
            }
            for r in sorted(self._rows.values(), key=lambda r: r.start_utc)
        ]

        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)

    async def list_reservations(
        self, provider_id: str, start_utc: DateTime, end_utc: DateTime
    ) -> List[Reservation]:
        window = TimeRange(start=start_utc, end=end_utc)
        rows = sorted(
            (
                reservation
                for reservation in self._rows.values()
                if reservation.provider_id == provider_id and reservation.time_range().overlaps(window)
            ),
            key=lambda r: r.start_utc,
        )
        await asyncio.sleep(self.latency)
        return rows

    async def insert_pending(self, reservation: Reservation, *, now: DateTime) -> Reservation:
        if reservation.status != ReservationStatus.PENDING:
            raise ValueError(f"Only PENDING reservations can be inserted, got {reservation.status.value}")

        async with self._day_lock(reservation):
            existing = [r for r in self._rows.values() if r.provider_id == reservation.provider_id]
            conflicts = self._conflict_detector.find_conflicts(
                reservation.start_utc, reservation.duration_minutes, existing, now=now
            )
            await asyncio.sleep(self.latency)

            if conflicts:
                raise SlotConflictError(
                    f"Interval starting {reservation.start_utc.to_iso8601_string()} is already taken",
                    conflicting_ids=tuple(r.id for r in conflicts),
                )

            self._rows[reservation.id] = reservation
            return reservation

    async def get(self, reservation_id: str) -> Reservation:
        await asyncio.sleep(self.latency)
        try:
            return self._rows[reservation_id]
        except KeyError:
            raise ReservationNotFound(f"Unknown reservation: {reservation_id}") from None

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> Reservation:
        current = await self.get(reservation_id)

        async with self._day_lock(current):
            updated = self._rows[reservation_id].transition_to(status)
            self._rows[reservation_id] = updated
            return updated

    async def release_expired(self, now: DateTime) -> List[Reservation]:
        released: List[Reservation] = []

        for reservation in list(self._rows.values()):
            if not reservation.is_expired(now):
                continue
            async with self._day_lock(reservation):
                current = self._rows[reservation.id]
                if current.is_expired(now):
                    self._rows[reservation.id] = current.transition_to(ReservationStatus.CANCELLED)
                    released.append(self._rows[reservation.id])

        return released

    @asynccontextmanager
    async def _day_lock(self, reservation: Reservation) -> AsyncIterator[None]:
        """Hold the lock of the reservation's provider and local day."""
        key = (reservation.provider_id, self.normalizer.to_local(reservation.start_utc).date())
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            # Drop the lock once no write for the day uses it
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]
