import plotly.express as px
import pandas as pd

def export_latency_chart(timeline, path: str):
    if not timeline:
        with open(path, "w") as f:
            f.write("<h1>Block Cache Latency</h1><p>No data to display.</p>")
        return

    df = pd.DataFrame(timeline)
    # Ensure numeric latency, coercing errors
    df['latency_us'] = pd.to_numeric(df['latency_us'], errors='coerce')
    df = df.dropna(subset=['latency_us'])

    hover_data_cols = ['seq', 'block', 'ok']
    existing_hover_cols = [c for c in hover_data_cols if c in df.columns]

    fig = px.box(
        df,
        x="pattern",
        y="latency_us",
        color="phase",
        hover_data=existing_hover_cols,
        points="outliers",
        title="Block Cache Latency by Access Pattern",
        labels={"pattern": "Access Pattern", "latency_us": "Latency (us)", "phase": "Phase"}
    )

    fig.update_yaxes(type="log")
    fig.update_layout(
        height=500,
        font=dict(family="Courier New, monospace", size=12),
        legend_title="Phase"
    )

    fig.write_html(path, include_plotlyjs="cdn", full_html=True)

def export_latency_ascii(timeline):
    if not timeline:
        return "Timeline is empty."

    # Group by pattern and phase
    lanes = {}
    for item in timeline:
        key = f"{item['pattern']}/{item['phase']}"
        lanes.setdefault(key, []).append(item['latency_us'])

    means = {key: sum(values) / len(values) for key, values in lanes.items()}
    max_mean = max(means.values(), default=0)
    if max_mean == 0:
        return "Timeline has no duration."

    chart = ""
    scale = 60.0 / max_mean # Scale to 60 characters width

    chart += "Block Cache Latency (ASCII, mean per op)\n"
    chart += "" + ("-" * 90) + "\n"

    for key in sorted(means):
        bar = '#' * max(1, int(means[key] * scale))
        chart += f"{key:>16} |{bar:<60} {means[key]:.2f} us\n"

    chart += "" + ("-" * 90) + "\n"

    return chart
