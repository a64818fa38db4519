from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from ftrace_core.domain.models import EventTraceEntry, FlowsDetail
from ftrace_core.domain.trace import (
    NEGLIGIBLE_AMOUNT,
    RECONCILE_TOLERANCE,
    FlowGroup,
    FlowItem,
    FlowSource,
)
from ftrace_core.services.reconciler import operating_flow

logger = logging.getLogger(__name__)

ONE_TIME_KEYWORDS = ("ONE_TIME", "TUITION", "VEHICLE", "INHERITANCE")


def is_transfer_like(cash_delta: float, invested_delta: float) -> bool:
    """Both buckets moved and the moves offset each other: a bucket transfer, not a flow."""
    return (
        abs(cash_delta) > NEGLIGIBLE_AMOUNT
        and abs(invested_delta) > NEGLIGIBLE_AMOUNT
        and abs(cash_delta + invested_delta) <= RECONCILE_TOLERANCE
    )


def classify_flow_group(event_type: str, cash_delta: float) -> FlowGroup:
    upper = event_type.upper()
    if "DEBT" in upper or "LIABILITY_PAYMENT" in upper:
        return FlowGroup.DEBT
    if any(keyword in upper for keyword in ONE_TIME_KEYWORDS):
        return FlowGroup.ONE_TIME
    if cash_delta >= 0:
        return FlowGroup.INCOME
    if "EXPENSE" in upper or "PAYMENT" in upper:
        return FlowGroup.SPENDING
    return FlowGroup.OTHER


class _ItemCollector:
    def __init__(self, month: str, source: FlowSource):
        self.month = month
        self.source = source
        self.items: List[FlowItem] = []

    def add(self, group: FlowGroup, label: str, amount: float, event_id: Optional[str] = None) -> None:
        if abs(amount) > NEGLIGIBLE_AMOUNT:
            self.items.append(
                FlowItem(
                    id=f"{self.month}_{group.value}_{len(self.items)}",
                    group=group,
                    label=label,
                    amount=amount,
                    source=self.source,
                    event_id=event_id,
                )
            )


def _entries_by_event(month_offset: int, event_trace: Iterable[EventTraceEntry]) -> Dict[str, List[EventTraceEntry]]:
    by_id: Dict[str, List[EventTraceEntry]] = defaultdict(list)
    for entry in event_trace:
        if entry.month_offset == month_offset:
            by_id[entry.event_id].append(entry)
    return by_id


def build_event_flow_items(
    month: str,
    month_offset: int,
    event_ids: Sequence[str],
    event_trace: Iterable[EventTraceEntry],
) -> List[FlowItem]:
    collector = _ItemCollector(month, FlowSource.EVENT)
    by_id = _entries_by_event(month_offset, event_trace)

    for event_id in event_ids:
        for entry in by_id.get(event_id, []):
            cash_delta = entry.cash_delta
            if is_transfer_like(cash_delta, entry.invested_delta):
                continue
            if abs(cash_delta) <= NEGLIGIBLE_AMOUNT:
                continue
            group = classify_flow_group(entry.event_type, cash_delta)
            collector.add(group, entry.event_name or entry.event_type, cash_delta, entry.event_id)
    return collector.items


def build_aggregate_flow_items(month: str, flows: FlowsDetail) -> List[FlowItem]:
    collector = _ItemCollector(month, FlowSource.AGGREGATE)

    income = [
        ("Salary", flows.salary_income),
        ("Bonus", flows.bonus_income),
        ("RSU", flows.rsu_income),
        ("Social Security", flows.social_security_income),
        ("Pension", flows.pension_income),
        ("Dividends", flows.dividend_income),
        ("Interest", flows.interest_income),
    ]
    for label, amount in income:
        if amount > 0:
            collector.add(FlowGroup.INCOME, label, amount)
    # Signed: itemized fields can exceed the engine total.
    other_income = flows.total_income - sum(amount for _, amount in income if amount > 0)
    if abs(other_income) > RECONCILE_TOLERANCE:
        collector.add(FlowGroup.INCOME, "Other Income", other_income)

    spending = [
        ("Housing", flows.housing_expenses),
        ("Transportation", flows.transportation_expenses),
        ("Food", flows.food_expenses),
        ("Other", flows.other_expenses),
    ]
    for label, amount in spending:
        if amount > 0:
            collector.add(FlowGroup.SPENDING, label, -amount)
    remaining = flows.total_expenses - sum(amount for _, amount in spending if amount > 0)
    if abs(remaining) > RECONCILE_TOLERANCE:
        collector.add(FlowGroup.SPENDING, "Miscellaneous", -remaining)

    if flows.debt_payments_principal > 0 or flows.debt_payments_interest > 0:
        collector.add(FlowGroup.DEBT, "Debt Payment", -(flows.debt_payments_principal + flows.debt_payments_interest))

    if flows.tax_withheld > 0:
        collector.add(FlowGroup.OTHER, "Tax Withheld", -flows.tax_withheld)
    if flows.taxes_paid > 0:
        collector.add(FlowGroup.OTHER, "Taxes Paid", -flows.taxes_paid)
    return collector.items


def build_flow_items(
    month: str,
    month_offset: int,
    flows: FlowsDetail,
    event_ids: Sequence[str],
    event_trace: Iterable[EventTraceEntry],
) -> List[FlowItem]:
    """
    Explain the month's operating flow as line items.

    Event-trace items are preferred; when any exist, a "System adjustments" item
    absorbs whatever the events do not explain (withholding, interest, ...) so the
    group foots to operating_flow. Otherwise the aggregate categories are used.
    """
    items = build_event_flow_items(month, month_offset, event_ids, event_trace)
    if not items:
        logger.debug("No event-derived flow items for %s; using aggregate categories", month)
        return build_aggregate_flow_items(month, flows)

    residual = operating_flow(flows) - sum(item.amount for item in items)
    if abs(residual) > RECONCILE_TOLERANCE:
        items.append(
            FlowItem(
                id=f"{month}_{FlowGroup.OTHER.value}_{len(items)}",
                group=FlowGroup.OTHER,
                label="System adjustments",
                amount=residual,
                source=FlowSource.AGGREGATE,
            )
        )
    return items
