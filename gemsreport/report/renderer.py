"""
Static Report Renderer
======================
Writes the hourly report: index.html with summary, QC and aggregate tables,
PNG charts, and one CSV per aggregate table.
"""

import html
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd

from gemsreport.processing.aggregator import RATIO_COLUMNS
from gemsreport.processing.processor import ProcessingResult

logger = logging.getLogger(__name__)


@dataclass
class ReportConfig:
    """Presentation settings, passed explicitly to the renderer."""
    title: str = "GEMS Lander Telemetry"
    precision: int = 3
    figsize: Tuple[float, float] = (9.0, 3.5)
    dpi: int = 100
    style: str = "ggplot"
    table_rows: int = 24

    @property
    def float_format(self) -> str:
        return f"{{:.{self.precision}g}}"


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; margin: 2em; }}
table {{ border-collapse: collapse; font-size: 0.85em; margin-bottom: 1.5em; }}
th, td {{ border: 1px solid #ccc; padding: 0.2em 0.5em; text-align: right; }}
.status-pass {{ color: #2a7; }} .status-warn {{ color: #c80; }} .status-fail {{ color: #c22; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p>Generated {generated_at}. QC status:
<span class="status-{qc_status}">{qc_status_upper}</span></p>
{summary}
<h2>Quality control</h2>
{qc_table}
<h2>Charts</h2>
{charts}
{sections}
</body>
</html>
"""


def _line_chart(
    df: pd.DataFrame,
    columns: Sequence[str],
    title: str,
    ylabel: str,
    path: Path,
    config: ReportConfig
) -> Optional[str]:
    """Plot columns against timestamp; returns the file name or None."""
    columns = [c for c in columns if c in df.columns and df[c].notna().any()]
    if df.empty or not columns:
        return None

    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    with plt.style.context(config.style):
        fig, ax = plt.subplots(figsize=config.figsize, dpi=config.dpi)
        x = pd.to_datetime(df["timestamp"])
        for column in columns:
            ax.plot(x, pd.to_numeric(df[column], errors="coerce"), marker=".", label=column)
        ax.set_title(title)
        ax.set_ylabel(ylabel)
        if len(columns) > 1:
            ax.legend(loc="best", fontsize="small")
        fig.autofmt_xdate()
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
    return path.name


def render_charts(result: ProcessingResult, output_dir: Path, config: ReportConfig) -> List[str]:
    """Write the report charts; returns the file names written."""
    agg = result.aggregates
    charts = [
        (agg.status, ["battery_voltage_mean"], "Battery voltage", "V", "battery.png"),
        (agg.temperature, ["water_temperature_mean"], "Water temperature", "°C", "temperature.png"),
        (agg.mass_spec_cycles, RATIO_COLUMNS, "Gas ratios to argon", "ratio", "mass_ratios.png"),
        (agg.adv, ["missing_frac"], "ADV missing fraction", "fraction", "adv_missing.png"),
    ]
    written = []
    for df, columns, title, ylabel, name in charts:
        chart = _line_chart(df, columns, title, ylabel, output_dir / name, config)
        if chart:
            written.append(chart)
    return written


def _table_html(df: pd.DataFrame, config: ReportConfig) -> str:
    if df.empty:
        return "<p>No data.</p>"
    return df.to_html(
        index=False,
        float_format=config.float_format.format,
        na_rep="",
        border=0,
    )


def render_report(
    result: ProcessingResult,
    output_dir: Union[str, Path],
    config: Optional[ReportConfig] = None
) -> Path:
    """
    Render the static report.

    Args:
        result: Processed run
        output_dir: Directory to write into (created if needed)
        config: Presentation settings

    Returns:
        Path to index.html
    """
    config = config or ReportConfig()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    sections = []
    for name, table in result.aggregates.items():
        table.to_csv(output_dir / f"{name}_aggregates.csv", index=False)
        recent = table.sort_values("timestamp").tail(config.table_rows) if not table.empty else table
        sections.append(
            f"<h2>{html.escape(name.replace('_', ' ').title())} (per batch)</h2>\n"
            + _table_html(recent, config)
        )

    charts = render_charts(result, output_dir, config)
    chart_html = "\n".join(
        f'<p><img src="{html.escape(c)}" alt="{html.escape(c)}"></p>' for c in charts
    ) or "<p>No chartable data.</p>"

    summary = result.to_summary_dict()
    summary_html = pd.DataFrame(
        {"metric": list(summary), "value": [str(v) for v in summary.values()]}
    ).to_html(index=False, border=0)

    page = PAGE_TEMPLATE.format(
        title=html.escape(config.title),
        generated_at=html.escape(summary['generated_at']),
        qc_status=summary['qc_status'],
        qc_status_upper=summary['qc_status'].upper(),
        summary=summary_html,
        qc_table=_table_html(result.qc_report.to_frame(), config),
        charts=chart_html,
        sections="\n".join(sections),
    )
    index = output_dir / "index.html"
    index.write_text(page, encoding="utf-8")
    logger.info("Wrote report to %s (%d charts)", index, len(charts))
    return index
