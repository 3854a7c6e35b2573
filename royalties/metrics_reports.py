from __future__ import annotations

from typing import Any, Dict, Optional

import altair as alt
import pandas as pd

from royalties.charts import EARNINGS_COLOR, STREAMS_COLOR, to_vega_spec
from royalties.data import round_half_up, store_distribution, top_artists


def artist_chart(artists: pd.DataFrame, base_currency: str) -> Optional[Dict[str, Any]]:
    if artists.empty:
        return None
    chart_df = artists.assign(total_earnings=lambda d: d["total_earnings"].apply(round_half_up))
    base = alt.Chart(chart_df).encode(
        x=alt.X("artist_name:N", title="Artist", sort=None, axis=alt.Axis(labelAngle=-45)),
    )
    bars = base.mark_bar(color=EARNINGS_COLOR).encode(
        y=alt.Y("total_earnings:Q", title=f"Earnings ({base_currency})", axis=alt.Axis(format=",.0f")),
        tooltip=["artist_name", alt.Tooltip("total_earnings:Q", format=",.0f")],
    )
    line = base.mark_line(point=True, color=STREAMS_COLOR).encode(
        y=alt.Y("total_streams:Q", title="Streams", axis=alt.Axis(format=",")),
        tooltip=["artist_name", alt.Tooltip("total_streams:Q", format=",")],
    )
    return to_vega_spec(alt.layer(bars, line).resolve_scale(y="independent").properties(height=360))


def store_chart(stores: pd.DataFrame) -> Optional[Dict[str, Any]]:
    if stores.empty:
        return None
    chart_df = stores.assign(earnings=lambda d: d["earnings"].apply(round_half_up))
    pie = (
        alt.Chart(chart_df)
        .mark_arc()
        .encode(
            theta=alt.Theta("earnings:Q", stack=True),
            color=alt.Color("store:N", title="Store"),
            tooltip=["store", alt.Tooltip("earnings:Q", format=",.0f")],
        )
        .properties(height=360)
    )
    return to_vega_spec(pie)


def compute_reports(ctx: Dict[str, Any]) -> Dict[str, Any]:
    royalties: pd.DataFrame = ctx.get("royalties", pd.DataFrame())
    base_currency: str = ctx.get("base_currency", "USD")

    artists = top_artists(royalties, limit=10)
    stores = store_distribution(royalties)
    return {
        "base_currency": base_currency,
        "top_artists": artists.to_dict(orient="records"),
        "artist_chart": artist_chart(artists, base_currency),
        "store_distribution": stores.to_dict(orient="records"),
        "store_chart": store_chart(stores),
    }
