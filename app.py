"""
app.py
Streamlit Gym Membership Manager (owner-only).
Run: streamlit run app.py
"""

from __future__ import annotations

import pandas as pd
import streamlit as st

import auth
import crud
import db
import log
import reports
import utils
from config import get_settings
from errors import GymError, ValidationError
from membership import classify_status, compute_period, sort_clients_by_status, status_message
from models import CLIENT_STATUS_LABELS, COMMON_PLAN_DURATIONS, PAYMENT_METHODS, DisplayStatus, YearMonth

st.set_page_config(page_title="Gym Manager", layout="wide")


def init_once():
    # Initialize DB + default admin once per browser session
    if st.session_state.get("db_ready"):
        return
    log.configure()
    settings = get_settings()
    db.init_db(auth.hash_password(settings.default_admin_password), settings.default_admin_username)
    st.session_state.db_ready = True


def require_login():
    if "logged_in" not in st.session_state:
        st.session_state.logged_in = False
    if "username" not in st.session_state:
        st.session_state.username = None


def logout():
    st.session_state.logged_in = False
    st.session_state.username = None
    st.success("Logged out.")


def show_errors(errors: list[str]) -> None:
    for e in errors:
        st.error(e)


def login_screen():
    st.title("🔐 Gym Owner Login")
    settings = get_settings()

    col1, col2 = st.columns([1, 1])
    with col1:
        username = st.text_input("Username", value=settings.default_admin_username)
        password = st.text_input("Password", type="password")
        if st.button("Login", type="primary"):
            if auth.login(username.strip(), password):
                st.session_state.logged_in = True
                st.session_state.username = username.strip()
                st.rerun()
            else:
                st.error("Invalid username or password.")

    with col2:
        st.info(
            "First run creates a default admin from the GYM_DEFAULT_ADMIN_* settings.\n\n"
            "You will be forced to change the password on first login."
        )


def force_change_password_screen():
    st.title("⚠️ Change Password (Required)")

    st.warning("You must change the default password before using the app.")
    new1 = st.text_input("New password", type="password")
    new2 = st.text_input("Confirm new password", type="password")

    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(new1, new2)
        if errors:
            show_errors(errors)
            return
        auth.change_password(st.session_state.username, new1)
        st.success("Password updated. You can continue.")
        st.rerun()


# ---------- Helpers ----------

def plan_options(include_inactive: bool = False) -> dict[str, int]:
    return {
        f"{p.name} ({p.duration_days} days, {utils.format_currency(p.price)})": p.id
        for p in crud.list_plans(include_inactive=include_inactive)
    }


def clients_frame(clients, today) -> pd.DataFrame:
    plans = crud.plans_by_id()
    return pd.DataFrame(
        [
            {
                "id": c.id,
                "full_name": c.full_name,
                "phone": c.phone,
                "plan": plans[c.current_plan_id].name if c.current_plan_id in plans else "",
                "status": classify_status(c, today).label,
                "expiration_date": c.expiration_date,
                "details": status_message(c, today),
            }
            for c in clients
        ],
        columns=["id", "full_name", "phone", "plan", "status", "expiration_date", "details"],
    )


def month_picker(key: str) -> YearMonth:
    today = utils.business_today()
    current = str(YearMonth.of(today))
    months = reports.available_months()
    options = {m["value"]: m["label"] for m in months}
    if current not in options:
        options = {current: YearMonth.of(today).label, **options}
    value = st.selectbox("Month", list(options.keys()), format_func=options.get, key=key)
    return YearMonth.parse(value)


# ---------- Pages ----------

def dashboard_page():
    st.header("📊 Dashboard")
    today = utils.business_today()
    month = month_picker("dashboard_month")

    stats = reports.dashboard_stats(month, today)
    todays = reports.today_stats(today)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric(
        "Revenue",
        utils.format_currency(stats.total_revenue),
        utils.format_percentage(stats.revenue_growth_percentage),
    )
    c2.metric("Projected monthly revenue", utils.format_currency(stats.projected_revenue))
    c3.metric("Active clients", stats.active_clients)
    c4.metric(
        "New clients",
        stats.new_clients_this_month,
        utils.format_percentage(stats.client_growth_percentage),
    )

    c5, c6, c7, c8 = st.columns(4)
    c5.metric("Churned clients", stats.churned_clients)
    c6.metric("Today's revenue", utils.format_currency(todays["todays_revenue"]))
    c7.metric("Today's payments", todays["todays_payments"])
    c8.metric("Today's registrations", todays["todays_registrations"])

    st.divider()

    st.subheader("Daily revenue")
    daily = pd.DataFrame(reports.daily_revenue(month))
    st.bar_chart(daily, x="date", y="revenue")

    st.subheader("Needs attention")
    alerts = [
        c
        for c in sort_clients_by_status(crud.fetch_clients(), today)
        if classify_status(c, today) in (DisplayStatus.EXPIRING_SOON, DisplayStatus.FROZEN)
    ]
    if alerts:
        st.dataframe(clients_frame(alerts, today), use_container_width=True, hide_index=True)
    else:
        st.caption("No expiring or expired memberships.")


def client_form(existing=None):
    if existing:
        st.subheader(f"✏️ Edit Client (ID: {existing.id})")
    else:
        st.subheader("➕ Add Client")

    plans = plan_options()
    labels = ["(none)"] + list(plans.keys())
    current_label = next((k for k, v in plans.items() if existing and v == existing.current_plan_id), "(none)")

    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("Full name", value=(existing.full_name if existing else ""))
        phone = st.text_input("Phone (10 digits)", value=(existing.phone if existing else ""))
        email = st.text_input("Email (optional)", value=(existing.email or "" if existing else ""))
    with col2:
        plan_label = st.selectbox("Plan", labels, index=labels.index(current_label))
        notes = st.text_area("Notes", value=(existing.notes or "" if existing else ""))

    errors = utils.validate_client_inputs(full_name, phone, email, notes)
    if full_name or phone:
        show_errors(errors)

    if st.button("Save", type="primary", disabled=bool(errors)):
        plan_id = plans.get(plan_label)
        try:
            if existing:
                crud.update_client(existing.id, full_name, phone, email, plan_id, notes)
                st.success("Client updated.")
            else:
                crud.create_client(full_name, phone, email, plan_id, notes)
                st.success("Client added.")
        except GymError as exc:
            st.error(str(exc))
            return
        st.session_state.edit_client_id = None
        st.rerun()


def clients_page():
    st.header("👥 Clients")
    today = utils.business_today()

    with st.sidebar:
        st.subheader("Search & Filters")
        search = st.text_input("Search (name/phone)")
        status = st.selectbox(
            "Status",
            ["all", "active", "expiring_soon", "frozen", "inactive"],
            format_func=lambda s: {"all": "All", "expiring_soon": "Expiring soon"}.get(s, CLIENT_STATUS_LABELS.get(s, s)),
        )
        sort_by = st.selectbox("Sort by", ["full_name", "status", "expiration_date", "registration_date"])
        page = st.number_input("Page", min_value=1, value=1, step=1)

    clients, pagination = crud.list_clients(
        today, search=search, status=status, page=int(page), sort_by=sort_by,
        sort_order="desc" if sort_by == "registration_date" else "asc",
    )
    st.dataframe(clients_frame(clients, today), use_container_width=True, hide_index=True)
    st.caption(f"Page {pagination['page']} of {max(pagination['total_pages'], 1)} ({pagination['total']} clients)")

    st.divider()

    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Select client")
        selected_id = st.selectbox("Client ID", options=["(none)"] + [str(c.id) for c in clients])

    with colB:
        if selected_id != "(none)":
            st.subheader("Client actions")
            c1, c2, c3 = st.columns(3)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_client_id = int(selected_id)
                    st.rerun()
            with c2:
                if st.button("Record payment"):
                    st.session_state.payments_client_id = int(selected_id)
                    st.session_state.page = "Payments"
                    st.rerun()
            with c3:
                delete_confirm = st.checkbox("Confirm delete", value=False, key="del_confirm")
                if st.button("Delete", type="secondary", disabled=not delete_confirm):
                    soft = crud.delete_client(int(selected_id))
                    st.success("Client archived (has payment history)." if soft else "Client deleted.")
                    st.rerun()

    st.divider()

    if st.session_state.get("edit_client_id"):
        try:
            existing = crud.get_client(st.session_state.edit_client_id)
        except GymError as exc:
            st.error(str(exc))
            existing = None
        if existing:
            client_form(existing=existing)
        if st.button("Cancel edit"):
            st.session_state.edit_client_id = None
            st.rerun()
    else:
        client_form(existing=None)


def payments_page():
    st.header("💳 Payments")
    today = utils.business_today()

    plans = plan_options()
    if not plans:
        st.info("No active plans yet. Add a plan first.")
        return

    clients = crud.fetch_clients()
    walk_in = st.toggle("Walk-in (no client)", value=False)
    client_id = None
    client = None
    if not walk_in:
        if not clients:
            st.info("No clients yet. Add a client first, or record a walk-in payment.")
            return
        options = {f"{c.full_name} ({c.phone}) - ID {c.id}": c.id for c in clients}
        ids = list(options.values())
        default_id = st.session_state.get("payments_client_id")
        default_index = ids.index(default_id) if default_id in ids else 0
        chosen_label = st.selectbox("Client", list(options.keys()), index=default_index)
        client_id = options[chosen_label]
        st.session_state.payments_client_id = client_id
        client = crud.get_client(client_id)
        st.write(f"Status: **{classify_status(client, today).label}** | {status_message(client, today)}")

    st.subheader("Add payment")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        plan_labels = list(plans.keys())
        default_plan = next((k for k, v in plans.items() if client and v == client.current_plan_id), plan_labels[0])
        plan_label = st.selectbox("Plan", plan_labels, index=plan_labels.index(default_plan))
        plan = crud.get_plan(plans[plan_label])
    with c2:
        amount = st.text_input("Amount", value=f"{plan.price:.2f}")
    with c3:
        pay_date = st.date_input("Date", value=today)
    with c4:
        method = st.selectbox("Method", list(PAYMENT_METHODS))
    notes = st.text_input("Notes", value="")

    period = compute_period(pay_date, plan.duration_days, client.expiration_date if client else None)
    st.info(f"Coverage: **{period.start}** to **{period.end}** ({period.days} days)")

    if st.button("Record payment", type="primary"):
        try:
            crud.record_payment(client_id, plan.id, amount, method, pay_date, notes)
        except ValidationError as exc:
            show_errors(exc.errors)
        except GymError as exc:
            st.error(str(exc))
        else:
            st.success("Payment recorded.")
            st.rerun()

    st.divider()

    st.subheader("Payment history")
    rows, _ = crud.list_payments(client_id=client_id, walk_in_only=walk_in, limit=crud.MAX_PAGE_SIZE)
    if rows:
        df = pd.DataFrame(rows)[
            ["id", "client_name", "plan_name", "amount", "payment_method", "payment_date", "period_start", "period_end", "notes"]
        ]
        st.dataframe(df, use_container_width=True, hide_index=True)
    else:
        st.caption("No payments yet.")


def plans_page():
    st.header("📋 Plans")

    plans = crud.list_plans(include_inactive=True)
    df = pd.DataFrame([vars(p) for p in plans], columns=["id", "name", "duration_days", "price", "description", "is_active"])
    df["monthly_equivalent"] = [reports.monthly_equivalent(p.price, p.duration_days) for p in plans]
    st.dataframe(df, use_container_width=True, hide_index=True)

    st.divider()

    editing = st.selectbox("Plan", ["(new plan)"] + [f"{p.id}: {p.name}" for p in plans])
    existing = None if editing == "(new plan)" else crud.get_plan(int(editing.split(":")[0]))

    col1, col2, col3 = st.columns(3)
    with col1:
        name = st.text_input("Name", value=existing.name if existing else "")
        preset = st.selectbox("Common durations", ["(custom)"] + list(COMMON_PLAN_DURATIONS.keys()))
    with col2:
        default_days = COMMON_PLAN_DURATIONS.get(preset, existing.duration_days if existing else 30)
        duration_days = st.number_input("Duration (days)", min_value=1, value=int(default_days), step=1)
        price = st.text_input("Price", value=f"{existing.price:.2f}" if existing else "")
    with col3:
        description = st.text_area("Description", value=(existing.description or "") if existing else "")
        is_active = st.checkbox("Active", value=existing.is_active if existing else True)

    errors = utils.validate_plan_inputs(name, duration_days, price, description)
    if name or price:
        show_errors(errors)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Save plan", type="primary", disabled=bool(errors)):
            try:
                if existing:
                    crud.update_plan(existing.id, name, int(duration_days), float(price), description, is_active)
                else:
                    crud.create_plan(name, int(duration_days), float(price), description, is_active)
            except GymError as exc:
                st.error(str(exc))
            else:
                st.success("Plan saved.")
                st.rerun()
    with c2:
        if existing and existing.is_active and st.button("Deactivate"):
            try:
                crud.deactivate_plan(existing.id)
            except GymError as exc:
                st.error(str(exc))
            else:
                st.success("Plan deactivated.")
                st.rerun()


def reports_page():
    st.header("🧾 Reports")
    month = month_picker("reports_month")
    breakdown = reports.revenue_breakdown(month)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total revenue", utils.format_currency(breakdown["total_revenue"]))
    c2.metric("Payments", breakdown["total_payments"])
    c3.metric("Cash", utils.format_currency(breakdown["revenue_by_method"]["cash"]))
    c4.metric("Transfer", utils.format_currency(breakdown["revenue_by_method"]["transfer"]))

    st.subheader("Revenue by plan")
    by_plan = pd.DataFrame(breakdown["revenue_by_plan"], columns=["plan_name", "total_revenue", "payment_count"])
    st.dataframe(by_plan, use_container_width=True, hide_index=True)

    st.subheader("Client statistics")
    st.json(reports.client_stats(utils.business_today()))

    st.divider()

    st.subheader("Export clients to CSV")
    clients = crud.export_clients_rows()
    if clients:
        st.download_button(
            "Download clients.csv",
            data=utils.clients_to_csv_bytes(clients),
            file_name="clients.csv",
            mime="text/csv",
        )
    else:
        st.caption("No clients to export.")

    st.subheader("Export payments to CSV")
    payments = crud.export_payments_rows()
    if payments:
        st.download_button(
            "Download payments.csv",
            data=utils.payments_to_csv_bytes(payments),
            file_name="payments.csv",
            mime="text/csv",
        )
    else:
        st.caption("No payments to export.")

    st.divider()

    st.subheader("Revenue summary by month")
    st.dataframe(reports.revenue_summary_by_month(), use_container_width=True, hide_index=True)


def settings_page():
    st.header("⚙️ Settings")

    st.subheader("Change password")
    p1 = st.text_input("New password", type="password")
    p2 = st.text_input("Confirm new password", type="password")
    if st.button("Update password", type="primary"):
        errors = auth.validate_new_password(p1, p2)
        if errors:
            show_errors(errors)
        else:
            auth.change_password(st.session_state.username, p1)
            st.success("Password updated.")

    st.divider()

    st.subheader("Sample data")
    st.caption("Insert sample plans, clients and payments for testing (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data()
        st.success("Sample data inserted.")
        st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Clients": clients_page,
    "Payments": payments_page,
    "Plans": plans_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


def main_app():
    st.sidebar.title("🏋️ Gym Manager")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = list(PAGES.keys())
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Logout"):
        logout()
        st.rerun()

    try:
        PAGES[st.session_state.page]()
    except GymError as exc:
        st.error(str(exc))


# --------- App entry ---------

def run():
    init_once()
    require_login()

    if not st.session_state.logged_in:
        login_screen()
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen()
        return

    main_app()


if __name__ == "__main__":
    run()
