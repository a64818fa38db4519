from __future__ import annotations

from typing import List, Optional

from ftrace_core.domain.models import MarketReturns, RealizedMonthVariables
from ftrace_core.domain.trace import NEGLIGIBLE_AMOUNT, RECONCILE_TOLERANCE, GrowthComponent, WorldVars


def _format_dollars(value: float) -> str:
    return f"${abs(value):,.0f}"


def _format_rate(value: float) -> str:
    sign = "+" if value >= 0 else ""
    return f"{sign}{value * 100:.2f}%"


def build_growth_components(
    invested_post_transfer: float,
    returns: MarketReturns,
    equity_allocation: float,
    actual_impact: float,
) -> List[GrowthComponent]:
    """
    Split the engine-reported market return into equity and bond contributions
    using the configured allocation, plus a residual so the components foot to
    actual_impact.

    invested_post_transfer is the Invested balance after the month's transfers
    and before returns (inv_start - transfer_cash).
    """
    equity_portion = invested_post_transfer * equity_allocation
    bond_portion = invested_post_transfer * (1 - equity_allocation)

    equity_return = returns.equity or 0.0
    bond_return = returns.bond or 0.0

    equity_impact = equity_portion * equity_return
    bond_impact = bond_portion * bond_return

    components: List[GrowthComponent] = []
    if abs(equity_impact) > NEGLIGIBLE_AMOUNT or equity_return != 0:
        components.append(
            GrowthComponent(
                label="Equity impact",
                amount=equity_impact,
                formula=f"{_format_dollars(equity_portion)} × {_format_rate(equity_return)}",
            )
        )
    if abs(bond_impact) > NEGLIGIBLE_AMOUNT or bond_return != 0:
        components.append(
            GrowthComponent(
                label="Bond impact",
                amount=bond_impact,
                formula=f"{_format_dollars(bond_portion)} × {_format_rate(bond_return)}",
            )
        )

    # Per-account allocations, fees, etc. make the engine value diverge from the model.
    residual = actual_impact - (equity_impact + bond_impact)
    if abs(residual) > RECONCILE_TOLERANCE:
        components.append(
            GrowthComponent(
                label="Other/Residual",
                amount=residual,
                formula="Engine value - (equity + bond)",
            )
        )
    return components


def build_world_vars(returns: MarketReturns, realized: Optional[RealizedMonthVariables] = None) -> WorldVars:
    linkage = {}
    if realized is not None:
        linkage = {
            "invested_base_for_return": realized.invested_base_for_return,
            "asset_weights": dict(realized.asset_weights),
            "weighted_return": realized.weighted_return,
            "computed_growth_dollars": realized.computed_growth_dollars,
        }
        if realized.spy_volatility is not None or realized.bnd_volatility is not None:
            linkage["volatility_state"] = {
                "spy": realized.spy_volatility or 0.0,
                "bnd": realized.bnd_volatility or 0.0,
                "intl": realized.intl_volatility,
            }

    return WorldVars(
        equity_return=returns.equity or 0.0,
        bond_return=returns.bond or 0.0,
        inflation=returns.inflation,
        intl_return=returns.intl,
        other_return=returns.other,
        home_return=returns.home,
        rental_return=returns.rent,
        individual_stock_return=returns.individual_stock,
        series_ids={"equity": "SPY", "bond": "BND"},
        **linkage,
    )
