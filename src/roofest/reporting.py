import pandas as pd

from .models import EstimateResult


def make_summary_text(result: EstimateResult) -> str:
    items_df = result.to_frame()
    items_df = items_df.assign(TOTAL=pd.to_numeric(items_df["total_price"].astype(float)))
    if items_df.empty:
        sections = "  (none)"
        top_text = "(no line items)"
    else:
        by_section = items_df.groupby("section", sort=False)["TOTAL"].sum()
        sections = "\n".join(f"  {name}: ${total:,.2f}" for name, total in by_section.items())
        top = items_df.sort_values("TOTAL", ascending=False, kind="stable").head(5)[
            ["code", "description", "quantity", "unit", "unit_price", "total_price"]
        ]
        top_text = top.to_string(index=False)
    return (
        f"Estimate subtotal: ${float(result.subtotal):,.2f} "
        f"({result.summary.squares} squares, waste factor {result.summary.waste_factor}).\n"
        f"By section:\n{sections}\n"
        f"Top cost drivers:\n{top_text}\n"
    )
