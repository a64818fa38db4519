from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np

from ftrace_core.domain.trace import RECONCILE_TOLERANCE, BreachStatus, TraceRow, TraceSummary


def summarize(rows: Sequence[TraceRow], tolerance: float = RECONCILE_TOLERANCE) -> TraceSummary:
    """
    Single ordered pass for the "interesting months".

    First-occurrence pointers latch once set. Extremal pointers move only on a
    strictly larger magnitude, so ties keep the earliest month. The drawdown and
    negative-return trackers start at zero, so a month must actually lose money
    to be flagged.
    """
    reconciled = 0
    first_mismatch: Optional[str] = None
    first_breach: Optional[str] = None
    first_negative_cash: Optional[str] = None

    worst_drawdown_month: Optional[str] = None
    worst_drawdown = 0.0
    largest_transfer_month: Optional[str] = None
    largest_transfer = 0.0
    largest_negative_return_month: Optional[str] = None
    largest_negative_return = 0.0

    for row in rows:
        if row.reconcile_delta <= tolerance:
            reconciled += 1
        elif first_mismatch is None:
            first_mismatch = row.month

        if row.breach != BreachStatus.NO and first_breach is None:
            first_breach = row.month
        if row.cash_end < 0 and first_negative_cash is None:
            first_negative_cash = row.month

        cash_change = row.cash_end - row.cash_start
        if cash_change < worst_drawdown:
            worst_drawdown = cash_change
            worst_drawdown_month = row.month

        if abs(row.transfer_cash) > largest_transfer:
            largest_transfer = abs(row.transfer_cash)
            largest_transfer_month = row.month

        if row.market_return_impact < largest_negative_return:
            largest_negative_return = row.market_return_impact
            largest_negative_return_month = row.month

    return TraceSummary(
        total_months=len(rows),
        reconciled_months=reconciled,
        first_breach_month=first_breach,
        first_negative_cash_month=first_negative_cash,
        first_mismatch_month=first_mismatch,
        worst_drawdown_month=worst_drawdown_month,
        largest_transfer_month=largest_transfer_month,
        largest_negative_return_month=largest_negative_return_month,
    )


def residual_stats(rows: Sequence[TraceRow]) -> Dict[str, Dict[str, float]]:
    """Max and mean absolute value of each residual column, for verification reports."""
    stats: Dict[str, Dict[str, float]] = {}
    for column in ("cash_delta", "inv_delta", "nw_delta", "reconcile_delta"):
        values = np.abs(np.array([getattr(row, column) for row in rows], dtype=float))
        if values.size == 0:
            stats[column] = {"max": 0.0, "mean": 0.0}
        else:
            stats[column] = {"max": float(values.max()), "mean": float(values.mean())}
    return stats
