from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from royalties.data import filter_options
from royalties.filters import RoyaltyFilters


def compute_royalties_table(ctx: Dict[str, Any]) -> Dict[str, Any]:
    royalties: pd.DataFrame = ctx.get("royalties", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_royalties", pd.DataFrame())
    filters: RoyaltyFilters = ctx.get("filters") or RoyaltyFilters()

    rows = filtered.assign(date=lambda d: d["date"].astype(str)) if not filtered.empty else filtered
    return {
        "filters": filters.to_dict(),
        "has_active_filters": filters.has_active_filters,
        "base_currency": ctx.get("base_currency", "USD"),
        "options": filter_options(royalties),
        "total_count": int(len(royalties)),
        "count": int(len(filtered)),
        "rows": rows.to_dict(orient="records"),
    }
