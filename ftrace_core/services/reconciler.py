from __future__ import annotations

import logging
from typing import Optional, Tuple

from ftrace_core.domain.models import AccountBalances, FlowsDetail, MonthSnapshot, TraceOptions
from ftrace_core.domain.trace import BreachStatus, TraceRow

logger = logging.getLogger(__name__)


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def invested_total(snapshot: MonthSnapshot) -> float:
    total = 0.0
    for account in (snapshot.taxable, snapshot.tax_deferred, snapshot.roth, snapshot.hsa, snapshot.education):
        if account is not None:
            total += account.total_value
    return total


def operating_flow(flows: FlowsDetail) -> float:
    """
    Net change to Cash from income, spending, debt service and taxes.
    Excludes transfers and market returns.
    """
    return (
        flows.total_income
        - flows.total_expenses
        - flows.debt_payments_principal
        - flows.debt_payments_interest
        - flows.tax_withheld
        - flows.taxes_paid
    )


def transfer_cash(flows: FlowsDetail) -> float:
    # Negative = Cash -> Invested.
    return flows.total_withdrawals - flows.total_contributions


def determine_breach(cash_end: float, cash_floor: float) -> BreachStatus:
    if cash_end < 0:
        return BreachStatus.NEGATIVE
    if cash_end < cash_floor:
        return BreachStatus.FLOOR
    return BreachStatus.NO


def account_balances(snapshot: MonthSnapshot) -> AccountBalances:
    def value(account) -> float:
        return account.total_value if account is not None else 0.0

    return AccountBalances(
        cash=snapshot.cash,
        taxable=value(snapshot.taxable),
        tax_deferred=value(snapshot.tax_deferred),
        roth=value(snapshot.roth),
        hsa=snapshot.hsa.total_value if snapshot.hsa is not None else None,
        education=snapshot.education.total_value if snapshot.education is not None else None,
    )


def _legacy_month_zero_starts(snapshot: MonthSnapshot) -> Tuple[float, float]:
    """
    Back out month-zero starts from end balances minus the month's flows.

    Circular: end = start + flows, so the residuals of a month built this way are
    zero by construction and prove nothing. Kept for callers that cannot supply
    initial balances.
    """
    flows = snapshot.flows
    cash_start = snapshot.cash - (operating_flow(flows) + transfer_cash(flows))
    inv_start = invested_total(snapshot) - (
        flows.total_contributions - flows.total_withdrawals + flows.investment_growth
    )
    return cash_start, inv_start


def month_zero_starts(snapshot: MonthSnapshot, options: TraceOptions) -> Tuple[float, float]:
    legacy_cash, legacy_inv = None, None
    if options.initial_cash is None or options.initial_invested is None:
        logger.warning(
            "Initial balances missing for %s (cash=%s, invested=%s); deriving month-zero start from end minus flows",
            format_month(snapshot.calendar_year, snapshot.calendar_month),
            options.initial_cash,
            options.initial_invested,
        )
        legacy_cash, legacy_inv = _legacy_month_zero_starts(snapshot)

    cash_start = options.initial_cash if options.initial_cash is not None else legacy_cash
    inv_start = options.initial_invested if options.initial_invested is not None else legacy_inv
    return cash_start, inv_start


def month_zero_account_starts(end: AccountBalances, options: TraceOptions) -> AccountBalances:
    if options.initial_account_balances is not None:
        return options.initial_account_balances
    return end


def reconcile_month(
    snapshot: MonthSnapshot,
    index: int,
    cash_start: float,
    inv_start: float,
    cash_floor: float,
    month: Optional[str] = None,
) -> TraceRow:
    """
    Build the reconciled row for one month.

    cash_start/inv_start must be the previous row's cash_end/inv_end unchanged
    (or the month-zero starts); no rounding is applied here.
    """
    month = month or format_month(snapshot.calendar_year, snapshot.calendar_month)
    flows = snapshot.flows

    cash_end = snapshot.cash
    inv_end = invested_total(snapshot)
    op_flow = operating_flow(flows)
    transfer = transfer_cash(flows)
    # Engine-reported growth is the source of truth; attribution only decomposes it.
    market_return = flows.investment_growth

    net_worth_end = cash_end + inv_end
    cash_delta = cash_end - (cash_start + op_flow + transfer)
    inv_delta = inv_end - (inv_start + market_return - transfer)
    nw_delta = net_worth_end - (cash_start + inv_start + op_flow + market_return)
    reconcile_delta = max(abs(cash_delta), abs(inv_delta), abs(nw_delta))

    row = TraceRow(
        month=month,
        month_index=index,
        cash_start=cash_start,
        operating_flow=op_flow,
        transfer_cash=transfer,
        cash_end=cash_end,
        cash_floor=cash_floor,
        breach=determine_breach(cash_end, cash_floor),
        inv_start=inv_start,
        market_return_impact=market_return,
        inv_end=inv_end,
        net_worth_end=net_worth_end,
        cash_delta=cash_delta,
        inv_delta=inv_delta,
        nw_delta=nw_delta,
        reconcile_delta=reconcile_delta,
        event_ids=tuple(snapshot.event_ids),
    )
    if not row.is_reconciled:
        logger.debug(
            "Month %s does not reconcile: cash_delta=%.4f inv_delta=%.4f nw_delta=%.4f",
            month,
            cash_delta,
            inv_delta,
            nw_delta,
        )
    return row
