"""
till_engines.totals -- Tax derivation and section roll-up.

Responsibility:
    Turn aggregated method groups into the two report sections:
    cash-basis (per register, plus a merged cross-register view) and
    credit-basis (store-wide).  Each row carries the tax-exclusive amount,
    the consumption tax and, where applicable, the withholding tax.

Invariants enforced:
    - net_of_tax = round2(local / (1 + consumption_rate)); consumption tax
      is the remainder, so net + tax == local for every row.
    - Withholding tax is non-zero only for cash-basis rows of a
      dollar-denominated method at a withholding-agent store.
    - Section sums are re-rounded after every accumulation.
    - The merged cash-basis view is derived from the per-register rows;
      both views therefore share one set of grand totals.

Audit relevance:
    The verification figure (grand local / rate against grand foreign)
    is exposed for the auditor and never fails the report.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from till_config.schema import MethodOrdering, TaxRates
from till_engines.aggregation import AggregatedMethod, sort_methods
from till_engines.tracer import traced_engine
from till_kernel.domain.dtos import DocumentType
from till_kernel.domain.values import ZERO, divide2, round2
from till_kernel.logging_config import get_logger

logger = get_logger("engines.totals")


@dataclass(frozen=True)
class MethodTotals:
    """One report row: a method's amounts and derived taxes."""

    method: str
    register_id: str | None
    amount_local: Decimal
    amount_foreign: Decimal
    count: int
    net_of_tax: Decimal
    consumption_tax: Decimal
    withholding_tax: Decimal
    is_dollar: bool = False

    def merge(self, other: MethodTotals) -> MethodTotals:
        """Consolidate another row of the same method (register dropped)."""
        return replace(
            self,
            register_id=None,
            amount_local=round2(self.amount_local + other.amount_local),
            amount_foreign=round2(self.amount_foreign + other.amount_foreign),
            count=self.count + other.count,
            net_of_tax=round2(self.net_of_tax + other.net_of_tax),
            consumption_tax=round2(self.consumption_tax + other.consumption_tax),
            withholding_tax=round2(self.withholding_tax + other.withholding_tax),
        )


@dataclass(frozen=True)
class SectionTotals:
    """Rolled-up sums of a section (or of the whole report)."""

    amount_local: Decimal = round2(0)
    amount_foreign: Decimal = round2(0)
    net_of_tax: Decimal = round2(0)
    consumption_tax: Decimal = round2(0)
    withholding_tax: Decimal = round2(0)
    count: int = 0

    def add(self, row: MethodTotals) -> SectionTotals:
        return SectionTotals(
            amount_local=round2(self.amount_local + row.amount_local),
            amount_foreign=round2(self.amount_foreign + row.amount_foreign),
            net_of_tax=round2(self.net_of_tax + row.net_of_tax),
            consumption_tax=round2(self.consumption_tax + row.consumption_tax),
            withholding_tax=round2(self.withholding_tax + row.withholding_tax),
            count=self.count + row.count,
        )

    def combine(self, other: SectionTotals) -> SectionTotals:
        return SectionTotals(
            amount_local=round2(self.amount_local + other.amount_local),
            amount_foreign=round2(self.amount_foreign + other.amount_foreign),
            net_of_tax=round2(self.net_of_tax + other.net_of_tax),
            consumption_tax=round2(self.consumption_tax + other.consumption_tax),
            withholding_tax=round2(self.withholding_tax + other.withholding_tax),
            count=self.count + other.count,
        )

    @classmethod
    def of(cls, rows: Iterable[MethodTotals]) -> SectionTotals:
        totals = cls()
        for row in rows:
            totals = totals.add(row)
        return totals


@dataclass(frozen=True)
class Section:
    """Ordered method rows plus their sums."""

    document_type: DocumentType
    methods: tuple[MethodTotals, ...] = ()
    totals: SectionTotals = field(default_factory=SectionTotals)

    def method(self, name: str) -> MethodTotals | None:
        for row in self.methods:
            if row.method == name:
                return row
        return None


@dataclass(frozen=True)
class CashBasisSection(Section):
    """
    Cash-basis section.

    ``methods`` is the merged view (each method consolidated across
    registers) consumed by reconciliation; ``registers`` is the
    per-register view used for presentation.
    """

    registers: Mapping[str, Section] = field(default_factory=dict)


@dataclass(frozen=True)
class Verification:
    """Cross-check of the grand totals through the rate."""

    foreign_via_rate: Decimal
    foreign_reported: Decimal
    difference: Decimal


@dataclass(frozen=True)
class SalesSummary:
    """Everything the orders pipeline produces for one (date, store)."""

    rate: Decimal
    cash_basis: CashBasisSection
    credit_basis: Section
    totals: SectionTotals
    verification: Verification


class TotalsCalculator:
    """
    Pure calculator for tax fields and section totals.

    Contract:
        Method ordering and tax rates are injected; store identity enters
        only as the withholding-agent flag.
    """

    def __init__(
        self,
        ordering: MethodOrdering | None = None,
        tax: TaxRates | None = None,
    ) -> None:
        self._ordering = ordering or MethodOrdering()
        self._tax = tax or TaxRates()
        self._tax_divisor = Decimal("1") + self._tax.consumption_rate

    def method_totals(
        self,
        group: AggregatedMethod,
        rate: Decimal,
        withholding_agent: bool,
    ) -> MethodTotals:
        """Derive the tax fields of a single group."""
        net_of_tax = divide2(group.amount_local, self._tax_divisor)
        consumption_tax = round2(group.amount_local - net_of_tax)
        withholds = (
            group.document_type == DocumentType.CASH_BASIS
            and self._ordering.is_dollar_method(group.method)
            and withholding_agent
        )
        withholding_tax = (
            round2(group.amount_foreign * self._tax.withholding_rate * rate)
            if withholds
            else round2(ZERO)
        )
        return MethodTotals(
            method=group.method,
            register_id=group.register_id,
            amount_local=group.amount_local,
            amount_foreign=group.amount_foreign,
            count=group.count,
            net_of_tax=net_of_tax,
            consumption_tax=consumption_tax,
            withholding_tax=withholding_tax,
            is_dollar=self._ordering.is_dollar_method(group.method),
        )

    def _sorted(self, rows: Iterable[MethodTotals]) -> tuple[MethodTotals, ...]:
        return sort_methods(rows, self._ordering.sort_first, self._ordering.sort_last)

    @traced_engine(
        "totals", "1.0",
        fingerprint_fields=("aggregated", "rate", "withholding_agent"),
    )
    def calculate(
        self,
        aggregated: Sequence[AggregatedMethod],
        rate: Decimal,
        withholding_agent: bool,
    ) -> SalesSummary:
        """Build both sections, the grand totals and the verification."""
        cash_rows: list[MethodTotals] = []
        credit_rows: list[MethodTotals] = []
        for group in aggregated:
            if group.document_type == DocumentType.VOIDED:
                continue
            row = self.method_totals(group, rate, withholding_agent)
            if group.document_type == DocumentType.CASH_BASIS:
                cash_rows.append(row)
            else:
                credit_rows.append(row)

        cash_basis = self._cash_basis_section(cash_rows)
        credit_basis = Section(
            document_type=DocumentType.CREDIT_BASIS,
            methods=self._sorted(credit_rows),
            totals=SectionTotals.of(credit_rows),
        )

        totals = cash_basis.totals.combine(credit_basis.totals)
        foreign_via_rate = divide2(totals.amount_local, rate)
        verification = Verification(
            foreign_via_rate=foreign_via_rate,
            foreign_reported=totals.amount_foreign,
            difference=round2(totals.amount_foreign - foreign_via_rate),
        )

        logger.info("sections_calculated", extra={
            "cash_basis_methods": len(cash_basis.methods),
            "cash_basis_registers": len(cash_basis.registers),
            "credit_basis_methods": len(credit_basis.methods),
            "total_local": str(totals.amount_local),
            "total_foreign": str(totals.amount_foreign),
            "verification_difference": str(verification.difference),
        })

        return SalesSummary(
            rate=rate,
            cash_basis=cash_basis,
            credit_basis=credit_basis,
            totals=totals,
            verification=verification,
        )

    def _cash_basis_section(self, rows: Sequence[MethodTotals]) -> CashBasisSection:
        by_register: dict[str, list[MethodTotals]] = {}
        merged: dict[str, MethodTotals] = {}
        totals = SectionTotals()
        for row in rows:
            by_register.setdefault(row.register_id or "", []).append(row)
            existing = merged.get(row.method)
            merged[row.method] = (
                existing.merge(row) if existing else replace(row, register_id=None)
            )
            totals = totals.add(row)

        registers = {
            register_id: Section(
                document_type=DocumentType.CASH_BASIS,
                methods=self._sorted(register_rows),
                totals=SectionTotals.of(register_rows),
            )
            for register_id, register_rows in sorted(by_register.items())
        }
        return CashBasisSection(
            document_type=DocumentType.CASH_BASIS,
            methods=self._sorted(merged.values()),
            totals=totals,
            registers=registers,
        )
