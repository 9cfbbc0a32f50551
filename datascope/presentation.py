"""
Presentation layer: table model, Chart.js configurations and file exports.

Rationale:
- Charts are built DETERMINISTICALLY from records + ColumnMapping (no LLM involved).
- Chart.js configs are plain dicts; the browser renders them.
- PNG export redraws the same four charts with matplotlib at 2x scale.
- Every function treats the field set as dynamic; nothing assumes fixed column names.
"""

import io
import json
import logging
from typing import Any, Dict, List, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from .schemas import ColumnMapping, Record, TableView, Value

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data available. Import or generate data to view."
COLORS = ["#0088FE", "#00C49F", "#FFBB28", "#FF8042", "#8884d8"]

# Base figure is 100 dpi; snapshots are taken at twice that.
PNG_SCALE = 2
PNG_DPI = 100 * PNG_SCALE


def has_chart_data(records: Sequence[Record], mapping: ColumnMapping) -> bool:
    return bool(records) and mapping.is_complete()


# ---------- table ----------

def _table_cell(value: Value) -> Value:
    """Missing fields and nulls both show as an empty cell."""
    return "" if value is None else value


def build_table(records: Sequence[Record]) -> TableView:
    """Header row from the first record; other records are read by those headers."""
    if not records:
        return TableView(placeholder=NO_DATA_MESSAGE)
    headers = list(records[0].keys())
    return TableView(
        headers=headers,
        labels=[h.replace("_", " ") for h in headers],
        rows=[[_table_cell(record.get(h)) for h in headers] for record in records],
    )


# ---------- charts ----------

def _frame(records: Sequence[Record], mapping: ColumnMapping) -> pd.DataFrame:
    """Axis/category/metric columns only, with the metric coerced to numbers."""
    df = pd.DataFrame.from_records(list(records))
    return pd.DataFrame({
        "axis": df[mapping.axis_key].fillna("").astype(str),
        "category": df[mapping.category_key].fillna("Unknown").astype(str),
        "metric": pd.to_numeric(df[mapping.metric_key], errors="coerce").fillna(0.0),
    })


def values_to_chartjs(values: Dict[str, Any], graph_type: str) -> Dict[str, Any]:
    """
    Convert {"labels": [...], "data": [...], "label": "..."} to a Chart.js configuration.
    A "fill" key in values turns a line chart into an area chart.
    """
    chartjs_config = {
        "type": graph_type,
        "data": {
            "labels": values.get("labels", []),
            "datasets": [{
                "label": values.get("label", "Series"),
                "data": values.get("data", []),
            }],
        },
    }

    if values.get("fill"):
        chartjs_config["data"]["datasets"][0]["fill"] = True

    if graph_type in ["doughnut", "pie"]:
        chartjs_config["data"]["datasets"][0]["backgroundColor"] = [
            COLORS[i % len(COLORS)] for i in range(len(chartjs_config["data"]["labels"]))
        ]

    # Add minimal options for certain chart types
    if graph_type in ["bar", "line"]:
        chartjs_config["options"] = {
            "scales": {
                "y": {
                    "beginAtZero": True
                }
            }
        }

    return chartjs_config


def build_charts(records: Sequence[Record], mapping: ColumnMapping) -> List[Dict[str, Any]]:
    """
    The four dashboard charts: trend, breakdown, per-category totals, distribution.
    Returns [] when the mapping is incomplete or there are no records.
    """
    if not has_chart_data(records, mapping):
        return []

    df = _frame(records, mapping)
    axis, metric, category = mapping.axis_key, mapping.metric_key, mapping.category_key
    totals = df.groupby("category", sort=False)["metric"].sum()

    series = {"labels": df["axis"].tolist(), "data": df["metric"].tolist(), "label": metric}
    charts = [
        ("trend", f"{metric} Trend", values_to_chartjs(series, "line")),
        ("breakdown", f"{metric} Breakdown by {category}", values_to_chartjs(
            {"labels": totals.index.tolist(), "data": totals.tolist(), "label": metric}, "doughnut")),
        ("totals", f"{metric} by {category}", values_to_chartjs(
            {"labels": totals.index.tolist(), "data": totals.tolist(), "label": metric}, "bar")),
        ("distribution", f"{metric} Distribution over {axis}", values_to_chartjs(
            dict(series, fill=True), "line")),
    ]
    return [dict(config, id=chart_id, title=title) for chart_id, title, config in charts]


# ---------- exports ----------

def export_json(records: Sequence[Record]) -> str:
    return json.dumps(list(records), indent=2)


def _csv_cell(value: Value) -> str:
    return "" if value is None else str(value)


def export_csv(records: Sequence[Record]) -> str:
    """
    Header line from the first record's field names, one comma-joined line per record.
    No quoting: values containing commas break the row structure.
    """
    if not records:
        return ""
    headers = list(records[0].keys())
    lines = [",".join(headers)]
    lines.extend(",".join(_csv_cell(record.get(h)) for h in headers) for record in records)
    return "\n".join(lines)


def export_png(records: Sequence[Record], mapping: ColumnMapping) -> bytes:
    """Snapshot of the chart grid as PNG bytes at 2x scale."""
    if not has_chart_data(records, mapping):
        raise ValueError("Not enough data to render charts")

    df = _frame(records, mapping)
    totals = df.groupby("category", sort=False)["metric"].sum()
    positions = list(range(len(df)))

    fig, axes = plt.subplots(2, 2, figsize=(12, 8))
    try:
        ax = axes[0][0]
        ax.plot(positions, df["metric"], color="#38bdf8", marker="o", linewidth=2)
        ax.set_xticks(positions)
        ax.set_xticklabels(df["axis"], rotation=45, ha="right", fontsize=7)
        ax.set_title(f"{mapping.metric_key} Trend")

        ax = axes[0][1]
        positive = totals.clip(lower=0)
        if positive.sum() > 0:
            ax.pie(positive, labels=positive.index, colors=COLORS, wedgeprops={"width": 0.35})
        else:
            ax.text(0.5, 0.5, "No positive values", ha="center", va="center")
            ax.axis("off")
        ax.set_title(f"{mapping.metric_key} Breakdown by {mapping.category_key}")

        ax = axes[1][0]
        ax.bar(totals.index, totals.values, color="#6366f1")
        ax.tick_params(axis="x", labelrotation=30, labelsize=8)
        ax.set_title(f"{mapping.metric_key} by {mapping.category_key}")

        ax = axes[1][1]
        ax.fill_between(positions, df["metric"], color="#14b8a6", alpha=0.6)
        ax.plot(positions, df["metric"], color="#14b8a6")
        ax.set_xticks([])
        ax.set_title(f"{mapping.metric_key} Distribution")

        fig.tight_layout()
        buf = io.BytesIO()
        fig.savefig(buf, format="png", dpi=PNG_DPI)
    finally:
        plt.close(fig)

    logger.info(f"Exported PNG snapshot of {len(df)} records")
    return buf.getvalue()
