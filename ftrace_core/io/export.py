from __future__ import annotations

import dataclasses
import datetime as dt
import json
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ftrace_core.domain.trace import TraceData

# Column order and header text are consumed by external spreadsheet tooling.
SUMMARY_COLUMNS = [
    "Month",
    "Start Cash",
    "Operating Flow",
    "Transfer",
    "End Cash",
    "Cash Floor",
    "Breach",
    "Start Inv",
    "Market Return",
    "End Inv",
    "End NW",
    "Reconcile Δ",
]
FLOW_COLUMNS = ["Month", "Posting ID", "Group", "Label", "Amount", "Source", "Event ID"]
WORLD_VARS_COLUMNS = ["Month", "Equity Return %", "Bond Return %", "Inflation %"]


@dataclasses.dataclass(frozen=True)
class ExportPack:
    summary: str
    flows: str
    world_vars: str
    meta: str


def round_half_away(value: float, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    # Avoid "-0" / "-0.00" in exported text.
    return rounded if rounded != 0 else abs(rounded)


def whole_dollars(value: float) -> str:
    return str(round_half_away(value, 0))


def cents(value: float) -> str:
    return str(round_half_away(value, 2))


def percent(rate: Optional[float]) -> str:
    if rate is None:
        return ""
    return str(round_half_away(rate * 100, 4))


def summary_table(trace: TraceData) -> pd.DataFrame:
    trace.validate()
    records = [
        [
            row.month,
            whole_dollars(row.cash_start),
            whole_dollars(row.operating_flow),
            whole_dollars(row.transfer_cash),
            whole_dollars(row.cash_end),
            whole_dollars(row.cash_floor),
            row.breach.value,
            whole_dollars(row.inv_start),
            whole_dollars(row.market_return_impact),
            whole_dollars(row.inv_end),
            whole_dollars(row.net_worth_end),
            cents(row.reconcile_delta),
        ]
        for row in trace.rows
    ]
    return pd.DataFrame(records, columns=SUMMARY_COLUMNS)


def flows_table(trace: TraceData) -> pd.DataFrame:
    trace.validate()
    records: List[List[str]] = []
    for row in trace.rows:
        for item in trace.flow_items_by_month.get(row.month, []):
            records.append(
                [
                    row.month,
                    item.id,
                    item.group.value,
                    item.label,
                    cents(item.amount),
                    item.source.value,
                    item.event_id or "",
                ]
            )
    return pd.DataFrame(records, columns=FLOW_COLUMNS)


def world_vars_table(trace: TraceData) -> pd.DataFrame:
    trace.validate()
    records: List[List[str]] = []
    for row in trace.rows:
        world = trace.world_vars_by_month.get(row.month)
        if world is None:
            continue
        records.append([row.month, percent(world.equity_return), percent(world.bond_return), percent(world.inflation)])
    return pd.DataFrame(records, columns=WORLD_VARS_COLUMNS)


def meta_document(trace: TraceData, exported_at: Optional[str] = None) -> Dict[str, Any]:
    trace.validate()
    document = dataclasses.asdict(trace.meta)
    document["summary"] = dataclasses.asdict(trace.summary)
    document["assumptions"] = dataclasses.asdict(trace.assumptions)
    document["exported_at"] = exported_at or dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")
    return document


def render_tsv(frame: pd.DataFrame) -> str:
    return frame.to_csv(sep="\t", index=False, lineterminator="\n")


def generate_export(trace: TraceData, exported_at: Optional[str] = None) -> ExportPack:
    """
    Render the four audit documents. Output is a pure function of the trace and
    exported_at; pass exported_at to get byte-identical output across runs.
    """
    return ExportPack(
        summary=render_tsv(summary_table(trace)),
        flows=render_tsv(flows_table(trace)),
        world_vars=render_tsv(world_vars_table(trace)),
        meta=json.dumps(meta_document(trace, exported_at), indent=2, ensure_ascii=False),
    )


def export_filenames(scenario_id: str) -> Dict[str, str]:
    return {
        "summary": f"trace_{scenario_id}_summary.tsv",
        "flows": f"trace_{scenario_id}_flows.tsv",
        "world_vars": f"trace_{scenario_id}_world_vars.tsv",
        "meta": f"trace_{scenario_id}_meta.json",
    }


def write_export(trace: TraceData, out_dir: str | Path, exported_at: Optional[str] = None) -> Dict[str, Path]:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    pack = generate_export(trace, exported_at)
    written: Dict[str, Path] = {}
    for key, filename in export_filenames(trace.meta.scenario_id).items():
        path = out_dir / filename
        path.write_text(getattr(pack, key), encoding="utf-8")
        written[key] = path
    return written
