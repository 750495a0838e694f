"""Line charts for portfolio value and single-coin prices."""

import base64
from io import BytesIO
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.dates as mdates

from crypto_portfolio.accounting.valuation import PricePoint, ValuePoint
from crypto_portfolio.report.formatting import display_name


def plot_portfolio_value(
    series: Sequence[ValuePoint],
    vs_currency: str = "usd",
    title: str = "Portfolio Value",
) -> plt.Figure:
    dates = [p.date for p in series]
    values = [p.total_value for p in series]
    return _line_chart(
        dates,
        values,
        title=title,
        label=f"Portfolio Value ({vs_currency.upper()})",
        color="#4CAF50",
    )


def plot_coin_price(
    points: Sequence[PricePoint],
    coin: str,
    days: int = 30,
    vs_currency: str = "usd",
) -> plt.Figure:
    name = display_name(coin)
    return _line_chart(
        [p.date for p in points],
        [p.price for p in points],
        title=f"{name} Price ({days} Days)",
        label=f"{name} Price ({vs_currency.upper()})",
        color="#2196F3",
    )


def _line_chart(dates, values, title: str, label: str, color: str) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(12, 5))
    if dates:
        ax.plot(dates, values, label=label, linewidth=1.5, color=color)
        ax.fill_between(dates, values, 0, color=color, alpha=0.2)
        ax.legend()
    ax.set_title(title, fontsize=14)
    ax.grid(True, alpha=0.3)
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%m-%d"))
    fig.autofmt_xdate()
    fig.tight_layout()
    return fig


def fig_to_base64(fig: plt.Figure) -> str:
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=100, bbox_inches="tight")
    buf.seek(0)
    b64 = base64.b64encode(buf.read()).decode("utf-8")
    plt.close(fig)
    return b64
