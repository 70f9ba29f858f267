"""
Reorder Requests Page.

Inventory reorder requests with KPIs, status breakdown and trend charts,
status tabs and the approve / reject / receive workflow.
"""

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from gymdesk.core.enums import SortDirection, ViewStatus
from gymdesk.services.reorder_lifecycle import ALL_TAB, STATUS_TABS, ReorderEvent
from gymdesk.ui.session import ensure_logging, flash, get_reorder_controller, run_async
from gymdesk.utils.formatting import (
    format_currency,
    format_date,
    format_datetime,
    reorder_status_color,
    status_label,
)

st.set_page_config(
    page_title="Reorder Requests",
    page_icon="📦",
    layout="wide",
)

ensure_logging()

st.title("📦 Reorder Requests")
st.markdown("Track and action inventory reorder requests across locations.")

controller = get_reorder_controller()
view = controller.view
location_names = {loc.id: loc.name for loc in controller.locations}


# =============================================================================
# KPIs
# =============================================================================

stats = controller.stats
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Pending Requests", stats.pending_count if stats else "N/A")
with col2:
    st.metric("Pending Value", format_currency(stats.pending_value) if stats else "N/A")
with col3:
    st.metric("Completed This Week", stats.completed_this_week if stats else "N/A")
with col4:
    st.metric("Total Requests", stats.total_requests if stats else "N/A")


# =============================================================================
# Charts
# =============================================================================

col1, col2 = st.columns(2)

with col1:
    st.subheader("Status Breakdown")
    breakdown = controller.status_breakdown
    if breakdown is None or breakdown.is_empty:
        st.info("No status data available.")
    else:
        fig = go.Figure(
            data=[
                go.Pie(
                    labels=breakdown.labels,
                    values=breakdown.values,
                    hole=0.4,
                    marker_colors=breakdown.colors
                    or [reorder_status_color(label.lower()) for label in breakdown.labels],
                )
            ]
        )
        fig.update_layout(height=300, margin=dict(t=20, b=20, l=20, r=20))
        st.plotly_chart(fig, use_container_width=True)

with col2:
    st.subheader("Request Trends")
    trends = controller.trends
    if trends is None or trends.is_empty:
        st.info("No trend data available.")
    else:
        fig = go.Figure()
        fig.add_trace(
            go.Scatter(
                x=trends.labels,
                y=trends.values,
                mode="lines+markers",
                name="Requests",
                line=dict(color="#3b82f6", width=2),
            )
        )
        fig.update_layout(
            height=300,
            margin=dict(t=20, b=20, l=20, r=20),
            xaxis_title="",
            yaxis_title="Requests",
        )
        st.plotly_chart(fig, use_container_width=True)


# =============================================================================
# Sidebar - New reorder request
# =============================================================================

with st.sidebar:
    st.header("New Reorder Request")

    with st.form("new_reorder_form", clear_on_submit=True):
        product_id = st.number_input("Product ID", min_value=1, step=1)
        location_id = st.selectbox(
            "Location",
            options=list(location_names.keys()),
            format_func=lambda x: location_names[x],
        )
        quantity = st.number_input("Quantity", min_value=1, step=1, value=10)
        notes = st.text_area("Notes")

        if st.form_submit_button("Submit Request"):
            result = run_async(
                controller.create(
                    {
                        "product_id": int(product_id),
                        "location_id": location_id,
                        "quantity": int(quantity),
                        "notes": notes or None,
                    }
                )
            )
            flash(result)
            if result.success:
                st.rerun()

    st.divider()
    if st.button("🔄 Refresh", use_container_width=True):
        run_async(controller.load())
        st.rerun()


# =============================================================================
# Status tabs, filters and sort
# =============================================================================

st.divider()
st.subheader("Requests")

tab = st.radio(
    "Status",
    options=STATUS_TABS,
    index=STATUS_TABS.index(controller.active_tab),
    format_func=lambda x: "All" if x == ALL_TAB else status_label(x),
    horizontal=True,
    label_visibility="collapsed",
)
if tab != controller.active_tab:
    run_async(controller.select_tab(tab))

col1, col2 = st.columns([1, 2])
with col1:
    location_filter = st.selectbox(
        "Location",
        options=["all"] + list(location_names.keys()),
        format_func=lambda x: "All Locations" if x == "all" else location_names[x],
    )
with col2:
    query = st.text_input("Search", placeholder="Request number, product, SKU or requester")

view.set_filter("location", location_filter)
view.set_search(query)

sort_columns = st.columns(len(view.schema.columns))
for column, slot in zip(view.schema.columns, sort_columns):
    arrow = ""
    if view.sort and view.sort.column == column.key:
        arrow = " ▲" if view.sort.direction == SortDirection.ASC else " ▼"
    if slot.button(f"{column.label}{arrow}", key=f"sort_{column.key}", use_container_width=True):
        view.sort_by(column.key)
        st.rerun()


# =============================================================================
# Request table
# =============================================================================

if view.status == ViewStatus.RATE_LIMITED:
    st.warning(f"⏳ Too many requests. Please try again in {view.retry_after}.")
elif view.status == ViewStatus.ERROR:
    st.error(f"❌ Failed to load reorder requests: {view.error_message}")
elif view.status == ViewStatus.LOADING:
    st.info("Loading reorder requests…")

if not view.displayed:
    if view.status == ViewStatus.EMPTY:
        st.info("No reorder requests match the current filters.")
else:
    df = pd.DataFrame(
        [
            {
                "Request #": r.request_number,
                "Date": format_date(r.requested_at),
                "Product": r.product_name,
                "Category": r.category_name or "",
                "Location": r.location_name or "",
                "Quantity": r.quantity_requested,
                "Total Cost": format_currency(r.total_cost),
                "Status": status_label(r.status),
                "Requested By": r.requested_by or "",
            }
            for r in view.displayed
        ]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption(f"Showing {len(view.displayed)} requests")


# =============================================================================
# Request detail and actions
# =============================================================================

if view.displayed:
    st.divider()
    request_options = {r.id: f"{r.request_number} · {r.product_name}" for r in view.displayed}
    selected_id = st.selectbox(
        "Request details",
        options=list(request_options.keys()),
        format_func=lambda x: request_options[x],
    )

    if st.session_state.get("reorder_detail_id") != selected_id:
        detail = run_async(controller.view_details(selected_id))
        if not detail.success:
            flash(detail)
        st.session_state["reorder_detail_id"] = selected_id

    request = controller.collection.get_cached(selected_id) or next(
        r for r in view.displayed if r.id == selected_id
    )

    with st.expander(f"📄 {request.request_number}", expanded=True):
        col1, col2, col3 = st.columns(3)
        with col1:
            st.markdown(f"**Product:** {request.product_name}")
            st.markdown(f"**SKU:** {request.product_sku or 'N/A'}")
            st.markdown(f"**Category:** {request.category_name or 'N/A'}")
            st.markdown(f"**Location:** {request.location_name or 'N/A'}")
        with col2:
            st.markdown(f"**Quantity Requested:** {request.quantity_requested}")
            st.markdown(f"**Unit Cost:** {format_currency(request.unit_cost)}")
            st.markdown(f"**Total Cost:** {format_currency(request.total_cost)}")
            if request.quantity_received is not None:
                st.markdown(f"**Quantity Received:** {request.quantity_received}")
        with col3:
            color = reorder_status_color(request.status)
            st.markdown(
                f'**Status:** <span style="color: {color}; font-weight: 600;">'
                f"{status_label(request.status)}</span>",
                unsafe_allow_html=True,
            )
            st.markdown(f"**Requested:** {format_datetime(request.requested_at)} by {request.requested_by or 'N/A'}")
            if request.approved_by:
                st.markdown(f"**Approved:** {format_datetime(request.approved_at)} by {request.approved_by}")
            if request.rejection_reason:
                st.markdown(f"**Rejection Reason:** {request.rejection_reason}")
        if request.notes:
            st.markdown(f"**Notes:** {request.notes}")

        actions = controller.available_actions(request)
        if not actions:
            st.caption("This request is closed. No further actions available.")

        if ReorderEvent.APPROVE in actions or ReorderEvent.REJECT in actions:
            col1, col2 = st.columns(2)
            with col1:
                if ReorderEvent.APPROVE in actions and st.button("✅ Approve", type="primary"):
                    result = run_async(controller.approve(request))
                    flash(result)
                    if result.success:
                        st.rerun()
            with col2:
                if ReorderEvent.REJECT in actions:
                    reason = st.text_input("Rejection reason", key=f"reject_reason_{request.id}")
                    if st.button("❌ Reject"):
                        result = run_async(controller.reject(request, reason))
                        flash(result)
                        if result.success:
                            st.rerun()

        if ReorderEvent.RECEIVE in actions:
            received = st.text_input(
                "Quantity received",
                value=str(request.quantity_requested),
                key=f"received_{request.id}",
            )
            if st.button("📥 Mark as Received", type="primary"):
                result = run_async(controller.receive(request, received))
                flash(result)
                if result.success:
                    st.rerun()


# Footer
st.divider()
st.caption(f"API: {controller.settings.API_BASE_URL}")
