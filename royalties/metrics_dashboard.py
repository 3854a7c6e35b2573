from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from royalties.charts import EARNINGS_COLOR, STREAMS_COLOR, to_vega_spec
from royalties.data import current_year_stats, group_by_period, recent_records, round_half_up, top_songs


def quarterly_chart(period_df: pd.DataFrame, base_currency: str) -> Optional[Dict[str, Any]]:
    if period_df.empty:
        return None
    chart_df = period_df.assign(earnings=lambda d: d["earnings"].apply(round_half_up))
    base = alt.Chart(chart_df).encode(x=alt.X("label:N", title="Quarter", sort=None))
    bars = base.mark_bar(color=EARNINGS_COLOR).encode(
        y=alt.Y("earnings:Q", title=f"Earnings ({base_currency})", axis=alt.Axis(format=",.0f")),
        tooltip=["label", alt.Tooltip("earnings:Q", format=",.0f")],
    )
    line = base.mark_line(point=True, color=STREAMS_COLOR).encode(
        y=alt.Y("streams:Q", title="Streams", axis=alt.Axis(format=",")),
        tooltip=["label", alt.Tooltip("streams:Q", format=",")],
    )
    return to_vega_spec(alt.layer(bars, line).resolve_scale(y="independent").properties(height=300))


def compute_dashboard(ctx: Dict[str, Any], *, today: Optional[date] = None) -> Dict[str, Any]:
    royalties: pd.DataFrame = ctx.get("royalties", pd.DataFrame())
    base_currency: str = ctx.get("base_currency", "USD")

    stats = current_year_stats(royalties, today=today)
    period = group_by_period(royalties)
    songs = top_songs(royalties, limit=5)
    recent = recent_records(royalties, limit=5)
    if not recent.empty:
        recent = recent.assign(date=lambda d: d["date"].astype(str))

    return {
        "base_currency": base_currency,
        "stats": stats,
        "quarterly": period.to_dict(orient="records"),
        "quarterly_chart": quarterly_chart(period, base_currency),
        "top_songs": songs.to_dict(orient="records"),
        "recent_royalties": recent.to_dict(orient="records"),
    }
