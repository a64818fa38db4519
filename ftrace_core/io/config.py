from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

from ftrace_core.domain.models import AccountBalances, Assumptions, TraceOptions
from ftrace_core.domain.trace import DEFAULT_CASH_FLOOR, DEFAULT_EQUITY_ALLOCATION


def load_trace_options(path: str | Path) -> TraceOptions:
    data = _read_json(path)
    return parse_trace_options(data)


def parse_trace_options(data: Dict[str, Any]) -> TraceOptions:
    return TraceOptions(
        scenario_id=str(data.get("scenario_id", "baseline")),
        seed=int(data.get("seed", 1234)),
        cash_floor=float(data.get("cash_floor", DEFAULT_CASH_FLOOR)),
        equity_allocation=clamp_allocation(float(data.get("equity_allocation", DEFAULT_EQUITY_ALLOCATION))),
        initial_cash=_optional_float(data.get("initial_cash")),
        initial_invested=_optional_float(data.get("initial_invested")),
        initial_account_balances=_parse_balances(data.get("initial_account_balances")),
        simulation_mode=str(data.get("simulation_mode", "deterministic")),
        model_description=data.get("model_description"),
    )


def load_assumptions(path: str | Path) -> Assumptions:
    data = _read_json(path)
    return Assumptions(
        stock_return_annual=float(data.get("stock_return_annual", 0.07)),
        bond_return_annual=float(data.get("bond_return_annual", 0.03)),
        inflation_annual=float(data.get("inflation_annual", 0.03)),
        intl_stock_return_annual=float(data.get("intl_stock_return_annual", 0.06)),
        home_appreciation_annual=float(data.get("home_appreciation_annual", 0.03)),
    )


def clamp_allocation(value: float) -> float:
    return min(1.0, max(0.0, value))


def _parse_balances(data: Optional[Dict[str, Any]]) -> Optional[AccountBalances]:
    if not data:
        return None
    return AccountBalances(
        cash=float(data.get("cash", 0.0)),
        taxable=float(data.get("taxable", 0.0)),
        tax_deferred=float(data.get("tax_deferred", 0.0)),
        roth=float(data.get("roth", 0.0)),
        hsa=_optional_float(data.get("hsa")),
        education=_optional_float(data.get("education")),
    )


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _read_json(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data
