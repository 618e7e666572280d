"""API client and frame/chart builders for the journal dashboard."""
from typing import Dict, List, Optional

import pandas as pd
import plotly.graph_objects as go
import requests


class JournalClient:
    """Thin wrapper over the journal API for one bearer token."""

    def __init__(self, base_url: str, token: str, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers["Authorization"] = f"Bearer {token}"

    def _get(self, path: str, params: Optional[Dict] = None):
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def health(self) -> Dict:
        return self._get("/health")

    def summary(self, initial_capital: Optional[float] = None) -> Dict:
        params = {"initial_capital": initial_capital} if initial_capital else None
        return self._get("/positions/stats/summary", params)

    def cumulative(self) -> List[Dict]:
        return self._get("/positions/stats/cumulative")

    def positions(self, status: Optional[str] = None, ticker: Optional[str] = None, limit: int = 500) -> List[Dict]:
        params = {"limit": limit}
        if status:
            params["status"] = status
        if ticker:
            params["ticker"] = ticker
        return self._get("/positions/", params)


POSITION_COLUMNS = [
    "id", "ticker", "direction", "status", "current_quantity", "average_entry_price",
    "total_realized_pnl", "unrealized_pnl", "initial_entry_date", "last_exit_date", "setup",
]
NUMERIC_COLUMNS = ["current_quantity", "average_entry_price", "total_realized_pnl", "unrealized_pnl"]


def positions_frame(positions: List[Dict]) -> pd.DataFrame:
    """Positions as a display table; decimals arrive as strings from the API."""
    df = pd.DataFrame(positions, columns=POSITION_COLUMNS)
    for column in NUMERIC_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors="coerce")
    for column in ("initial_entry_date", "last_exit_date"):
        df[column] = pd.to_datetime(df[column], errors="coerce")
    return df


def cumulative_frame(points: List[Dict], initial_capital: float = 0.0) -> pd.DataFrame:
    """Cumulative P&L points with the capital curve alongside."""
    df = pd.DataFrame(points, columns=["position_id", "ticker", "date", "pnl", "cumulative_pnl"])
    df["date"] = pd.to_datetime(df["date"])
    df["capital"] = initial_capital + df["cumulative_pnl"]
    return df


def cumulative_figure(df: pd.DataFrame) -> go.Figure:
    """Line chart of cumulative realized P&L."""
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=df["date"],
        y=df["cumulative_pnl"],
        mode="lines+markers",
        name="Cumulative P&L",
        text=df["ticker"],
        hovertemplate="%{text}<br>%{x|%Y-%m-%d}<br>Cumulative: $%{y:,.2f}<extra></extra>",
    ))
    fig.add_hline(y=0, line_dash="dot", line_color="gray")
    fig.update_layout(
        title="Cumulative Realized P&L",
        xaxis_title="Exit date",
        yaxis_title="P&L",
        height=400,
        margin=dict(l=20, r=20, t=50, b=20),
    )
    return fig
