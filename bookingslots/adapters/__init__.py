"""
Adapters layer - Storage collaborators (provider settings, reservation ledger).
"""

from .reservation_ledger import InMemoryReservationLedger
from .schedule_store import ConfigScheduleStore

__all__ = ["ConfigScheduleStore", "InMemoryReservationLedger"]
