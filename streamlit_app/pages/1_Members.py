"""
Members Page.

Member list with KPIs, filters, search and column sorting, plus a detail
panel for the freeze / unfreeze / cancel / reactivate lifecycle, edits,
payments and check-ins.
"""

from datetime import date

import pandas as pd
import streamlit as st

from gymdesk.core.enums import (
    CancellationReason,
    CardType,
    FreezeDuration,
    FreezeReason,
    MembershipPlan,
    MemberStatus,
    PaymentMethodLabel,
    PaymentStanding,
    ReactivationReason,
    SortDirection,
    ViewStatus,
    enum_value,
)
from gymdesk.services.member_lifecycle import (
    CancellationForm,
    FreezeForm,
    MemberEvent,
    ReactivationForm,
)
from gymdesk.ui.session import ensure_logging, flash, get_member_controller, run_async
from gymdesk.utils.formatting import (
    format_card,
    format_currency,
    format_date,
    format_datetime,
    member_status_color,
    status_label,
)

st.set_page_config(
    page_title="Members",
    page_icon="🏋️",
    layout="wide",
)

ensure_logging()

st.title("🏋️ Members")
st.markdown("Manage gym members, memberships and billing.")

controller = get_member_controller()
view = controller.view
settings = controller.settings
location_names = {loc.id: loc.name for loc in controller.locations}


# =============================================================================
# KPIs
# =============================================================================

stats = controller.stats
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Active Members", stats.active_members if stats else "N/A")
with col2:
    st.metric("New This Month", stats.new_this_month if stats else "N/A")
with col3:
    st.metric("Frozen", stats.frozen_members if stats else "N/A")
with col4:
    st.metric("Cancelled", stats.cancelled_members if stats else "N/A")


# =============================================================================
# Sidebar - Add new member
# =============================================================================

with st.sidebar:
    st.header("Add New Member")

    with st.form("new_member_form", clear_on_submit=True):
        name = st.text_input("Full Name")
        email = st.text_input("Email")
        phone = st.text_input("Phone")
        emergency_contact = st.text_input("Emergency Contact")
        location_id = st.selectbox(
            "Location",
            options=list(location_names.keys()),
            format_func=lambda x: location_names[x],
        )
        plan = st.selectbox(
            "Plan",
            options=[p.value for p in MembershipPlan],
            format_func=lambda x: f"{x} ({format_currency(MembershipPlan(x).monthly_cost)}/mo)",
        )

        if st.form_submit_button("Create Member"):
            result = run_async(
                controller.create_member(
                    {
                        "name": name,
                        "email": email,
                        "phone": phone,
                        "emergency_contact": emergency_contact or None,
                        "location_id": location_id,
                        "plan": plan,
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
# Filters, search and sort
# =============================================================================

st.subheader("Member List")

col1, col2, col3, col4 = st.columns([1, 1, 1, 2])
with col1:
    location_filter = st.selectbox(
        "Location",
        options=["all"] + list(location_names.keys()),
        format_func=lambda x: "All Locations" if x == "all" else location_names[x],
    )
with col2:
    plan_filter = st.selectbox(
        "Plan", options=["all"] + [p.value for p in MembershipPlan],
        format_func=lambda x: "All Plans" if x == "all" else x,
    )
with col3:
    status_filter = st.selectbox(
        "Status",
        options=["all", "active", "frozen", "cancelled"],
        format_func=lambda x: "All Statuses" if x == "all" else x.capitalize(),
    )
with col4:
    query = st.text_input("Search", placeholder="Name, email, member ID or phone")

view.set_filter("location", location_filter)
view.set_filter("plan", plan_filter)
view.set_filter("status", status_filter)
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
# Member table
# =============================================================================

if view.status == ViewStatus.RATE_LIMITED:
    st.warning(f"⏳ Too many requests. Please try again in {view.retry_after}.")
elif view.status == ViewStatus.ERROR:
    st.error(f"❌ Failed to load members: {view.error_message}")
elif view.status == ViewStatus.LOADING:
    st.info("Loading members…")

# Previously loaded rows stay visible under a rate-limit or error banner
if not view.displayed:
    if view.status == ViewStatus.EMPTY:
        st.info("No members match the current filters.")
else:
    df = pd.DataFrame(
        [
            {
                "ID": m.member_id,
                "Name": m.name,
                "Email": m.email,
                "Location": m.location_name or "",
                "Plan": enum_value(m.plan),
                "Status": status_label(m.status),
                "Join Date": format_date(m.created_at),
            }
            for m in view.displayed
        ]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)
    st.caption(f"Showing {len(view.displayed)} of {len(controller.collection.superset)} members")


# =============================================================================
# Member detail panel
# =============================================================================

if view.displayed:
    st.divider()
    member_options = {m.id: f"{m.member_id} · {m.name}" for m in view.displayed}
    selected_id = st.selectbox(
        "Member details",
        options=list(member_options.keys()),
        format_func=lambda x: member_options[x],
    )

    if st.session_state.get("member_detail_id") != selected_id:
        detail = run_async(controller.load_member(selected_id))
        if not detail.success:
            flash(detail)
        st.session_state["member_detail_id"] = selected_id

    member = controller.collection.get_cached(selected_id) or next(
        m for m in view.displayed if m.id == selected_id
    )
    color = member_status_color(member.status)

    st.markdown(
        f"""
        <h3>{member.name}
            <span style="background-color: {color}; color: white; padding: 2px 10px;
                         border-radius: 12px; font-size: 0.6em; vertical-align: middle;">
                {status_label(member.status)}
            </span>
        </h3>
        """,
        unsafe_allow_html=True,
    )
    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown(f"**Member ID:** {member.member_id}")
        st.markdown(f"**Email:** {member.email}")
        st.markdown(f"**Phone:** {member.phone or 'N/A'}")
        st.markdown(f"**Emergency Contact:** {member.emergency_contact or 'N/A'}")
    with col2:
        st.markdown(f"**Location:** {member.location_name or 'N/A'}")
        st.markdown(f"**Plan:** {enum_value(member.plan)} ({format_currency(member.monthly_cost)}/mo)")
        st.markdown(f"**Joined:** {format_date(member.created_at)}")
        st.markdown(f"**Days Active:** {member.days_active()}")
    with col3:
        st.markdown(f"**Total Check-ins:** {member.total_check_ins if member.total_check_ins is not None else 'N/A'}")
        if member.status == MemberStatus.FROZEN:
            st.markdown(
                f"**Frozen:** {format_date(member.freeze_start_date)} → {format_date(member.freeze_end_date)}"
            )
            st.markdown(f"**Freeze Reason:** {member.freeze_reason or 'N/A'}")
        if member.notes:
            st.markdown(f"**Notes:** {member.notes}")

    actions = controller.available_actions(member)
    tab_names = ["Actions", "Edit", "Payments", "Check-ins"]
    actions_tab, edit_tab, payments_tab, checkins_tab = st.tabs(tab_names)

    # -- lifecycle actions -------------------------------------------------
    with actions_tab:
        if not actions:
            st.info("No actions available for this member.")

        if MemberEvent.FREEZE in actions:
            with st.expander("❄️ Freeze Membership"):
                duration = st.selectbox(
                    "Duration",
                    options=[d.value for d in FreezeDuration],
                    index=2,
                    format_func=lambda x: FreezeDuration(x).label,
                    key="freeze_duration",
                )
                start = st.date_input("Start Date", value=date.today(), key="freeze_start")
                freeze_form = FreezeForm(start_date=start, duration=FreezeDuration(duration))
                if freeze_form.end_date_editable:
                    end = st.date_input("End Date", value=start, key="freeze_end")
                    freeze_form.set_end_date(end)
                else:
                    st.date_input("End Date", value=freeze_form.end_date, disabled=True, key="freeze_end_fixed")
                if freeze_form.length_days:
                    st.caption(
                        f"{freeze_form.length_days} days: {format_date(freeze_form.start_date)} → {format_date(freeze_form.end_date)}"
                    )
                reason = st.selectbox(
                    "Reason",
                    options=[""] + [r.value for r in FreezeReason],
                    format_func=lambda x: x or "Select a reason (optional)",
                    key="freeze_reason",
                )
                freeze_form.reason = FreezeReason(reason) if reason else None
                freeze_form.notes = st.text_area("Notes", key="freeze_notes")

                if st.button("Freeze Member", type="primary"):
                    result = run_async(controller.freeze(member, freeze_form))
                    flash(result)
                    if result.success:
                        st.rerun()

        if MemberEvent.UNFREEZE in actions:
            if controller.pending_unfreeze == member.id:
                st.warning(f"Unfreeze {member.name}? Billing resumes immediately.")
                col1, col2 = st.columns(2)
                with col1:
                    if st.button("Confirm Unfreeze", type="primary"):
                        result = run_async(controller.confirm_unfreeze(member))
                        flash(result)
                        if result.success:
                            st.rerun()
                with col2:
                    if st.button("Keep Frozen"):
                        controller.dismiss_unfreeze()
                        st.rerun()
            elif st.button("☀️ Unfreeze Membership"):
                flash(controller.request_unfreeze(member))
                st.rerun()

        if MemberEvent.REACTIVATE in actions:
            with st.expander("🔄 Reactivate Membership"):
                method_result = run_async(controller.load_reactivation_payment_method(member))
                if method_result.success:
                    st.markdown(f"**Payment method on file:** {format_card(method_result.entity)}")
                else:
                    st.warning(f"Failed to load payment method: {method_result.error}")

                with st.form("reactivate_form"):
                    reason = st.selectbox(
                        "Reason",
                        options=[""] + [r.value for r in ReactivationReason],
                        format_func=lambda x: x or "Select a reason",
                    )
                    restart = st.date_input("Restart Date", value=date.today())
                    notes = st.text_area("Notes")
                    confirmed = st.checkbox("I confirm this membership should be reactivated")
                    if st.form_submit_button("Reactivate Member", type="primary"):
                        result = run_async(
                            controller.reactivate(
                                member,
                                ReactivationForm(
                                    reason=reason or None,
                                    start_date=restart,
                                    notes=notes,
                                    confirmed=confirmed,
                                ),
                            )
                        )
                        flash(result)
                        if result.success:
                            st.rerun()

        if MemberEvent.CANCEL in actions:
            with st.expander("🗑️ Cancel Membership"):
                with st.form("cancel_form"):
                    reason = st.selectbox(
                        "Reason",
                        options=[""] + [r.value for r in CancellationReason],
                        format_func=lambda x: x or "Select a reason",
                    )
                    notes = st.text_area("Notes")
                    username = st.text_input("Admin Username", value=settings.DEFAULT_ADMIN_USERNAME)
                    password = st.text_input("Admin Password", type="password")
                    confirmed = st.checkbox("I understand this cancels the membership")
                    if st.form_submit_button("Cancel Membership", type="primary"):
                        result = run_async(
                            controller.cancel_membership(
                                member,
                                CancellationForm(
                                    reason=reason or None,
                                    notes=notes,
                                    admin_username=username,
                                    admin_password=password,
                                    confirmed=confirmed,
                                ),
                            )
                        )
                        flash(result)
                        if result.success:
                            st.rerun()

    # -- edit ----------------------------------------------------------------
    with edit_tab:
        with st.form(f"edit_{member.id}"):
            col1, col2 = st.columns(2)
            with col1:
                new_name = st.text_input("Full Name", value=member.name)
                new_email = st.text_input("Email", value=member.email)
                new_phone = st.text_input("Phone", value=member.phone or "")
            with col2:
                new_contact = st.text_input("Emergency Contact", value=member.emergency_contact or "")
                location_keys = list(location_names.keys())
                new_location = st.selectbox(
                    "Location",
                    options=location_keys,
                    index=location_keys.index(member.location_id) if member.location_id in location_keys else 0,
                    format_func=lambda x: location_names[x],
                )
                plans = [p.value for p in MembershipPlan]
                new_plan = st.selectbox("Plan", options=plans, index=plans.index(member.plan) if member.plan in plans else 0)
            new_notes = st.text_area("Notes", value=member.notes or "")

            if st.form_submit_button("Save Changes"):
                result = run_async(
                    controller.update_member(
                        member,
                        {
                            "name": new_name,
                            "email": new_email,
                            "phone": new_phone or None,
                            "emergency_contact": new_contact or None,
                            "location_id": new_location,
                            "plan": new_plan,
                            "notes": new_notes or None,
                        },
                    )
                )
                flash(result)
                if result.success:
                    st.rerun()

    # -- payments ------------------------------------------------------------
    with payments_tab:
        summary_result = run_async(controller.payment_summary(member))
        if summary_result.success:
            summary = summary_result.entity
            col1, col2, col3, col4 = st.columns(4)
            with col1:
                st.metric("Monthly Cost", format_currency(summary.monthly_cost))
            with col2:
                last = summary.last_payment
                st.metric("Last Payment", format_date(last.payment_date) if last else "N/A")
            with col3:
                st.metric("Next Due", format_date(summary.next_due_date) if summary.next_due_date else "N/A")
            with col4:
                st.metric("Balance Due", format_currency(summary.balance_due))
            if summary.standing == PaymentStanding.OVERDUE:
                st.error(f"⚠️ Payment overdue ({summary.days_since_last_payment} days since last payment)")
            elif summary.standing == PaymentStanding.NEW_MEMBER:
                st.info("New member: no payments recorded yet")
        else:
            flash(summary_result)

        payments_result = run_async(controller.list_payments(member.id))
        if payments_result.success and payments_result.entity:
            df = pd.DataFrame(
                [
                    {
                        "Date": format_date(p.payment_date),
                        "Amount": format_currency(p.amount),
                        "Method": p.payment_method or "",
                        "Status": status_label(p.status),
                        "Notes": p.notes or "",
                    }
                    for p in payments_result.entity
                ]
            )
            st.dataframe(df, use_container_width=True, hide_index=True)

        col1, col2 = st.columns(2)
        with col1:
            with st.form(f"payment_{member.id}", clear_on_submit=True):
                st.markdown("**Record Payment**")
                amount = st.number_input(
                    "Amount", min_value=0.0, value=float(member.monthly_cost), step=1.0, format="%.2f"
                )
                method = st.selectbox("Method", options=[m.value for m in PaymentMethodLabel])
                paid_on = st.date_input("Payment Date", value=date.today())
                notes = st.text_input("Notes")
                if st.form_submit_button("Record Payment"):
                    result = run_async(
                        controller.record_payment(
                            member.id,
                            {
                                "amount": f"{amount:.2f}",
                                "payment_method": method,
                                "payment_date": paid_on,
                                "notes": notes or None,
                            },
                        )
                    )
                    flash(result)
                    if result.success:
                        st.rerun()
        with col2:
            method_result = run_async(controller.get_payment_method(member.id))
            current = method_result.entity if method_result.success else None
            with st.form(f"payment_method_{member.id}"):
                st.markdown(f"**Payment Method:** {format_card(current)}")
                card_types = [c.value for c in CardType]
                card_type = st.selectbox(
                    "Card Type",
                    options=card_types,
                    index=card_types.index(current.card_type.value) if current else 0,
                )
                last_four = st.text_input("Last 4 Digits", value=current.last_four if current else "", max_chars=4)
                exp_col1, exp_col2 = st.columns(2)
                with exp_col1:
                    expiry_month = st.number_input(
                        "Expiry Month", min_value=1, max_value=12, value=current.expiry_month if current else 1
                    )
                with exp_col2:
                    expiry_year = st.number_input(
                        "Expiry Year",
                        min_value=date.today().year,
                        max_value=date.today().year + 20,
                        value=max(current.expiry_year, date.today().year) if current else date.today().year,
                    )
                cardholder = st.text_input("Cardholder Name", value=current.cardholder_name if current else member.name)
                billing_zip = st.text_input("Billing ZIP", value=(current.billing_zip or "") if current else "")
                if st.form_submit_button("Update Payment Method"):
                    result = run_async(
                        controller.update_payment_method(
                            member.id,
                            {
                                "card_type": card_type,
                                "last_four": last_four,
                                "expiry_month": int(expiry_month),
                                "expiry_year": int(expiry_year),
                                "cardholder_name": cardholder,
                                "billing_zip": billing_zip or None,
                            },
                        )
                    )
                    flash(result)

    # -- check-ins -----------------------------------------------------------
    with checkins_tab:
        if member.status == MemberStatus.ACTIVE and st.button("✅ Record Check-in"):
            flash(run_async(controller.record_check_in(member)))

        history_result = run_async(controller.check_in_history(member.id))
        if not history_result.success:
            flash(history_result)
        elif not history_result.entity.check_ins:
            st.info("No check-ins recorded yet.")
        else:
            history = history_result.entity
            st.caption(f"Showing {history.showing} of {history.total} check-ins")
            df = pd.DataFrame(
                [
                    {"Time": format_datetime(c.check_in_time), "Location": c.location_name or ""}
                    for c in history.check_ins
                ]
            )
            st.dataframe(df, use_container_width=True, hide_index=True)


# Footer
st.divider()
st.caption(f"Total Members: {len(controller.collection.superset)} | API: {settings.API_BASE_URL}")
