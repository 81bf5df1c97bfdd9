"""
ReportConfig schema.

Frozen dataclasses the loader parses ``sets/*.yaml`` into.  Engines take
these objects (or plain values read from them) as parameters; they never
open configuration files themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class StoreDefinition:
    """One store in the catalog."""

    code: str
    name: str
    withholding_agent: bool = True


@dataclass(frozen=True)
class MethodOrdering:
    """Fixed ordering lists for payment methods inside a section."""

    sort_first: tuple[str, ...] = ()
    sort_last: tuple[str, ...] = ()
    dollar: tuple[str, ...] = ()

    def is_dollar_method(self, method: str) -> bool:
        return method in self.dollar


@dataclass(frozen=True)
class TaxRates:
    """Consumption (VAT-style) and withholding rates as fractions."""

    consumption_rate: Decimal = Decimal("0.16")
    withholding_rate: Decimal = Decimal("0.03")


@dataclass(frozen=True)
class ReconciliationThresholds:
    """Signals raised on the reconciliation output; never fatal."""

    warning_threshold_pct: Decimal = Decimal("1")
    bucket_tolerance: Decimal = Decimal("1.00")


@dataclass(frozen=True)
class ReportConfig:
    """Complete, validated configuration for one audit run."""

    config_id: str
    version: int
    local_currency: str
    foreign_currency: str
    stores: tuple[StoreDefinition, ...]
    methods: MethodOrdering
    tax: TaxRates = field(default_factory=TaxRates)
    thresholds: ReconciliationThresholds = field(
        default_factory=ReconciliationThresholds
    )
    checksum: str = ""

    def store(self, code: str) -> StoreDefinition | None:
        """Catalog entry for ``code`` (case-insensitive), or None."""
        wanted = code.upper()
        for store in self.stores:
            if store.code == wanted:
                return store
        return None

    def is_withholding_agent(self, code: str) -> bool:
        """Unknown stores are treated as withholding agents."""
        store = self.store(code)
        return store.withholding_agent if store else True

    def store_name(self, code: str) -> str:
        store = self.store(code)
        return store.name if store else code

    @property
    def store_codes(self) -> tuple[str, ...]:
        return tuple(store.code for store in self.stores)

    def resolve_stores(self, codes: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        """
        Expand a store selection.

        An empty selection or ``["all"]`` means every configured store in
        catalog order; anything else is upper-cased and kept in input
        order, unknown codes included.
        """
        if not codes or (len(codes) == 1 and codes[0].lower() == "all"):
            return self.store_codes
        return tuple(code.upper() for code in codes)
