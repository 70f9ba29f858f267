"""
Gym Admin Dashboard - Main Application.

Landing page: headline KPIs from both pages and quick navigation.
"""

import streamlit as st

from gymdesk import __version__
from gymdesk.core.config import get_settings
from gymdesk.ui.session import (
    ensure_logging,
    get_member_controller,
    get_reorder_controller,
)
from gymdesk.utils.formatting import format_currency

st.set_page_config(
    page_title="Gym Admin Dashboard",
    page_icon="🏋️",
    layout="wide",
    initial_sidebar_state="expanded",
)

ensure_logging()
settings = get_settings()

st.markdown(
    """
<style>
    .main-header {
        background: linear-gradient(135deg, #1e3a8a 0%, #3b82f6 100%);
        color: white;
        padding: 1.5rem;
        border-radius: 10px;
        margin-bottom: 1.5rem;
        box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
    }

    .main-header h1 {
        margin: 0;
        font-size: 2rem;
        font-weight: 600;
    }

    .main-header p {
        margin: 0.5rem 0 0 0;
        opacity: 0.9;
    }

    .quick-action {
        background: linear-gradient(135deg, #F8F9FA 0%, #E9ECEF 100%);
        border-radius: 10px;
        padding: 1.5rem;
        text-align: center;
        border: 1px solid #DEE2E6;
    }

    .quick-action .icon {
        font-size: 2.5rem;
        margin-bottom: 0.5rem;
    }

    .footer {
        text-align: center;
        padding: 1rem;
        color: #6C757D;
        font-size: 0.85rem;
        border-top: 1px solid #DEE2E6;
        margin-top: 2rem;
    }
</style>
""",
    unsafe_allow_html=True,
)

st.markdown(
    """
<div class="main-header">
    <h1>🏋️ Gym Admin Dashboard</h1>
    <p>Members, billing and inventory across all locations</p>
</div>
""",
    unsafe_allow_html=True,
)

with st.sidebar:
    st.markdown(f"### 👤 {settings.ACTING_ADMIN_NAME}")
    st.caption(f"Backend: {settings.API_BASE_URL}")

members = get_member_controller()
reorders = get_reorder_controller()

col1, col2 = st.columns(2)

with col1:
    st.markdown(
        """
    <div class="quick-action">
        <div class="icon">👥</div>
        <strong>Members</strong>
        <p style="font-size: 0.8rem; color: #666; margin: 0.5rem 0 0 0;">
            Freeze, cancel, reactivate and billing
        </p>
    </div>
    """,
        unsafe_allow_html=True,
    )
    if st.button("Open Members", key="btn_members", use_container_width=True):
        st.switch_page("pages/1_Members.py")

    member_stats = members.stats
    m1, m2 = st.columns(2)
    m1.metric("Active Members", member_stats.active_members if member_stats else "N/A")
    m2.metric("Frozen", member_stats.frozen_members if member_stats else "N/A")

with col2:
    st.markdown(
        """
    <div class="quick-action">
        <div class="icon">📦</div>
        <strong>Reorder Requests</strong>
        <p style="font-size: 0.8rem; color: #666; margin: 0.5rem 0 0 0;">
            Approve, reject and receive stock
        </p>
    </div>
    """,
        unsafe_allow_html=True,
    )
    if st.button("Open Reorder Requests", key="btn_reorders", use_container_width=True):
        st.switch_page("pages/2_Reorder_Requests.py")

    reorder_stats = reorders.stats
    r1, r2 = st.columns(2)
    r1.metric("Pending Requests", reorder_stats.pending_count if reorder_stats else "N/A")
    r2.metric(
        "Pending Value",
        format_currency(reorder_stats.pending_value) if reorder_stats else "N/A",
    )

st.markdown(
    f"""
<div class="footer">
    <p>Gym Admin Dashboard v{__version__}</p>
</div>
""",
    unsafe_allow_html=True,
)
