"""Streamlit dashboard for the trade journal."""

import streamlit as st
import requests
from config.settings import get_settings, get_journal_config
from dashboard.data import JournalClient, positions_frame, cumulative_frame, cumulative_figure


def format_direction(direction):
    """Format direction for consistent display"""
    direction_mapping = {"Buy": "📈 Buy", "Sell": "📉 Sell"}
    return direction_mapping.get(direction, direction)


def format_status(status):
    """Format status for consistent display"""
    status_mapping = {"Open": "🟢 Open", "Closed": "🔴 Closed"}
    return status_mapping.get(status, status)


settings = get_settings()
journal_config = get_journal_config()

st.set_page_config(page_title="Trade Journal", page_icon="📒", layout="wide")

# Client-side session state: token, API address and capital live per browser session
if "api_url" not in st.session_state:
    st.session_state.api_url = settings.API_URL
if "token" not in st.session_state:
    st.session_state.token = ""
if "initial_capital" not in st.session_state:
    st.session_state.initial_capital = float(journal_config["capital"]["initial"])

with st.sidebar:
    st.markdown("### Connection")
    st.session_state.api_url = st.text_input("API URL", value=st.session_state.api_url)
    st.session_state.token = st.text_input("Access token", value=st.session_state.token, type="password")
    st.markdown("### Capital")
    st.session_state.initial_capital = st.number_input(
        "Initial capital", min_value=0.0, value=st.session_state.initial_capital, step=1000.0
    )
    st.markdown("### Filters")
    status_filter = st.selectbox("Status", ["All", "Open", "Closed"])
    ticker_filter = st.text_input("Ticker").strip().upper()

st.title("📒 Trade Journal")

if not st.session_state.token:
    st.info("Enter an access token in the sidebar to load your journal.")
    st.stop()

client = JournalClient(
    st.session_state.api_url,
    st.session_state.token,
    timeout=journal_config["dashboard"]["request_timeout"],
)

with st.sidebar:
    st.markdown("### API")
    try:
        health = client.health()
        if health["status"] == "healthy":
            st.success(f"API healthy, database {health['database']}")
        else:
            st.warning(f"API unhealthy, database {health['database']}")
    except requests.RequestException as e:
        st.error(f"API offline: {e}")

try:
    summary = client.summary(st.session_state.initial_capital or None)
    points = client.cumulative()
    positions = client.positions(
        status=None if status_filter == "All" else status_filter,
        ticker=ticker_filter or None,
    )
except requests.HTTPError as e:
    if e.response is not None and e.response.status_code == 401:
        st.error("Token rejected by the API")
    else:
        st.error(f"API error: {e}")
    st.stop()
except requests.RequestException as e:
    st.error(f"API offline: {e}")
    st.stop()

# ========== METRICS ==========
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Initial Capital", f"${summary['initial_capital']:,.2f}")
    st.metric("Current Capital", f"${summary['current_capital']:,.2f}")
with col2:
    st.metric("Realized P&L", f"${summary['total_realized_pnl']:,.2f}")
    st.metric("Closed Positions", summary["closed"])
with col3:
    st.metric("Win Rate", f"{summary['win_rate'] * 100:.1f}%")
    st.metric("Payoff Ratio", f"{summary['payoff_ratio']:.2f}")
with col4:
    st.metric("Avg Winner", f"${summary['average_profit']:,.2f}")
    st.metric("Avg Loser", f"${summary['average_loss']:,.2f}")

# ========== CHART ==========
if points:
    st.plotly_chart(
        cumulative_figure(cumulative_frame(points, st.session_state.initial_capital)),
        use_container_width=True,
    )
else:
    st.info("No closed positions yet.")

# ========== POSITIONS ==========
st.subheader("Positions")
if positions:
    df = positions_frame(positions)
    df["direction"] = df["direction"].map(format_direction)
    df["status"] = df["status"].map(format_status)
    st.dataframe(df, use_container_width=True, hide_index=True)
else:
    st.info("No positions match the current filters.")
