"""
DTOs -- Immutable input records for the daily audit.

Responsibility:
    Defines ``RawOrder``, one sale transaction as reported by the
    accounting backend, and ``DocumentType``, the closed set of document
    classifications an order can be filed under.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Built by ``till_ingestion.mapping`` and consumed by the engines.

Invariants enforced:
    - All monetary fields are Decimal (never float).
    - Records are frozen; engines never mutate their inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class DocumentType(str, Enum):
    """Document classification of an order."""

    CASH_BASIS = "FAV"  # Tracked per register
    CREDIT_BASIS = "NEN"  # Consolidated store-wide
    VOIDED = "BC"  # Excluded from every computation

    @classmethod
    def parse(cls, code: object) -> DocumentType:
        """Map a backend code; anything unrecognized files under credit-basis."""
        normalized = "" if code is None else str(code).strip().upper()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.CREDIT_BASIS


@dataclass(frozen=True)
class RawOrder:
    """One sale transaction with per-method raw amounts in both currencies."""

    order_id: str
    document_type: DocumentType
    register_id: str = ""
    terminal_name: str = ""

    # Point-of-sale card terminal
    pos_local: Decimal = Decimal("0")
    pos_foreign: Decimal = Decimal("0")

    # Mobile transfer
    mobile_local: Decimal = Decimal("0")
    mobile_foreign: Decimal = Decimal("0")

    # Cash in foreign currency and the change handed back
    cash_foreign: Decimal = Decimal("0")
    cash_foreign_change: Decimal = Decimal("0")

    # Cash in local currency and the change handed back
    cash_local: Decimal = Decimal("0")
    cash_local_change: Decimal = Decimal("0")

    # Peer transfer, always reported in foreign currency
    peer_transfer: Decimal = Decimal("0")

    @property
    def is_voided(self) -> bool:
        return self.document_type == DocumentType.VOIDED
