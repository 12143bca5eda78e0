# frontend/app.py
# Taskhub – multi-tenant projects and tasks dashboard
#
# Run from repo root: streamlit run frontend/app.py
# Or from frontend folder: streamlit run app.py

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

# Import environment config (robust fallback for different run contexts)
try:
    from frontend.config import ENABLE_DEBUG_UI, ENV, get_api_base_url
except ModuleNotFoundError:
    from config import ENABLE_DEBUG_UI, ENV, get_api_base_url

# Import centralized auth state management
try:
    from frontend.auth import (
        init_auth_state, set_auth, clear_auth, is_authenticated,
        require_auth, get_current_user, get_current_tenant, get_role, get_user_id
    )
except ModuleNotFoundError:
    from auth import (
        init_auth_state, set_auth, clear_auth, is_authenticated,
        require_auth, get_current_user, get_current_tenant, get_role, get_user_id
    )

# Import centralized API client
try:
    from frontend.api_client import api_call
except ModuleNotFoundError:
    from api_client import api_call

try:
    from frontend.navigation import (
        can_claim, counts_frame, default_page, nav_items_for_role,
        status_actions, tasks_frame, usage_percent
    )
except ModuleNotFoundError:
    from navigation import (
        can_claim, counts_frame, default_page, nav_items_for_role,
        status_actions, tasks_frame, usage_percent
    )

st.set_page_config(page_title="Taskhub", page_icon="✅", layout="wide")

ss = st.session_state

PRIORITIES = ["low", "medium", "high"]
TASK_STATUSES = ["todo", "in_progress", "completed"]
PROJECT_STATUSES = ["active", "archived", "completed"]

# --------------------------------------------------------------------
# Navigation helper (single source of truth)
# --------------------------------------------------------------------

def go_to(page: str) -> None:
    """Set ss["nav_page"] and rerun. The only way pages change."""
    st.session_state["nav_page"] = page
    st.rerun()


def show_error(message: str, operation: str = "operation") -> None:
    """Render a backend error message from the response envelope."""
    st.error(message or f"Request failed: {operation}")


def apply_login_result(data: Dict[str, Any]) -> bool:
    """Store {token, user, tenant} from /auth/login or /auth/register-tenant."""
    token = (data or {}).get("token")
    user = (data or {}).get("user")
    if not token or not user:
        st.error("Login failed: incomplete session data.")
        return False
    set_auth(token, user, data.get("tenant"))
    ss["nav_page"] = default_page(user.get("role"))
    ss["_clear_login_fields"] = True
    return True


# --------------------------------------------------------------------
# Sidebar
# --------------------------------------------------------------------

def render_sidebar() -> None:
    with st.sidebar:
        st.title("✅ Taskhub")

        if is_authenticated():
            user = get_current_user() or {}
            tenant = get_current_tenant()
            st.caption(f"Signed in as **{user.get('full_name') or user.get('email')}**")
            st.caption(f"Role: `{user.get('role')}`")
            if tenant:
                st.caption(f"Tenant: {tenant.get('name')} ({tenant.get('plan')} plan)")
            else:
                st.caption("System space")

        items = nav_items_for_role(get_role() if is_authenticated() else None)
        current = ss.get("nav_page")
        index = items.index(current) if current in items else 0
        choice = st.radio("Navigate", items, index=index)
        if ss.get("nav_page") != choice:
            ss["nav_page"] = choice

        if is_authenticated():
            st.divider()
            if st.button("Log out"):
                clear_auth()
                go_to("Login")

        if ENABLE_DEBUG_UI:
            st.divider()
            with st.expander("🐛 Debug"):
                st.text(f"ENV: {ENV}")
                try:
                    st.text(f"API: {get_api_base_url()}")
                except (RuntimeError, ValueError) as e:
                    st.text(f"API: not configured ({e})")
                st.text(f"nav_page: {ss.get('nav_page')}")
                st.text(f"role: {get_role()}")


# --------------------------------------------------------------------
# Login / Register
# --------------------------------------------------------------------

def render_login() -> None:
    # Widget keys can only be cleared before the widgets are created
    if ss.pop("_clear_login_fields", None):
        for key in ("login_email", "login_password", "login_tenant"):
            ss.pop(key, None)

    st.header("Login")

    with st.form("login_form"):
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        tenant = st.text_input(
            "Tenant subdomain", key="login_tenant",
            help="Leave empty to sign in as a system administrator",
        )
        submitted = st.form_submit_button("Login")

    if submitted:
        if not email or not password:
            st.error("Please enter email and password.")
            return
        payload = {"email": email, "password": password, "tenant_subdomain": tenant.strip() or None}
        ok, data, message = api_call("POST", "/auth/login", json=payload, timeout=10)
        if not ok:
            show_error(message, "login")
            return
        if apply_login_result(data):
            st.rerun()

    st.divider()
    st.subheader("Register a new tenant")

    with st.form("register_form"):
        tenant_name = st.text_input("Company name")
        subdomain = st.text_input("Subdomain", help="Lowercase letters, digits and hyphens")
        full_name = st.text_input("Your name")
        reg_email = st.text_input("Admin email")
        reg_password = st.text_input("Password", type="password")
        reg_submitted = st.form_submit_button("Register")

    if reg_submitted:
        if not all([tenant_name, subdomain, full_name, reg_email, reg_password]):
            st.error("Please fill in all registration fields.")
            return
        ok, data, message = api_call("POST", "/auth/register-tenant", json={
            "tenant_name": tenant_name,
            "subdomain": subdomain,
            "full_name": full_name,
            "email": reg_email,
            "password": reg_password,
        }, timeout=10)
        if not ok:
            show_error(message, "registration")
            return
        st.success("Tenant registered! Logging you in...")
        if apply_login_result(data):
            st.rerun()


# --------------------------------------------------------------------
# Dashboard
# --------------------------------------------------------------------

def render_usage(usage: Dict[str, Dict[str, int]]) -> None:
    cols = st.columns(len(usage) or 1)
    for col, (quota, values) in zip(cols, usage.items()):
        used, limit = values.get("used", 0), values.get("limit")
        with col:
            st.metric(quota.title(), f"{used} / {limit}")
            st.progress(usage_percent(used, limit))


def render_dashboard() -> None:
    if not require_auth():
        return
    st.header("Dashboard")

    ok, stats, message = api_call("GET", "/dashboard/stats")
    if not ok:
        show_error(message, "dashboard")
        return

    role = stats.get("role")
    if role == "system_admin":
        totals = stats.get("totals", {})
        cols = st.columns(4)
        for col, key in zip(cols, ("tenants", "users", "projects", "tasks")):
            col.metric(key.title(), totals.get(key, 0))
        left, right = st.columns(2)
        with left:
            st.subheader("Tenants by plan")
            st.bar_chart(counts_frame(stats.get("tenants_by_plan"), "plan").set_index("plan"))
        with right:
            st.subheader("Tenants by status")
            st.dataframe(counts_frame(stats.get("tenants_by_status"), "status"), hide_index=True)
        return

    if role == "tenant_admin":
        tenant = stats.get("tenant") or {}
        st.caption(f"{tenant.get('name')} · {tenant.get('plan')} plan")
        render_usage(stats.get("usage", {}))
        st.metric("Unassigned tasks", stats.get("unassigned_tasks", 0))
        st.subheader("Projects by status")
        st.dataframe(counts_frame(stats.get("projects_by_status"), "status"), hide_index=True)
    else:
        cols = st.columns(3)
        cols[0].metric("My tasks", stats.get("my_tasks", 0))
        cols[1].metric("Open tasks", stats.get("open_tasks", 0))
        cols[2].metric("Projects", stats.get("projects", 0))
        st.subheader("My tasks by status")
        st.bar_chart(counts_frame(stats.get("my_tasks_by_status"), "status").set_index("status"))

    left, right = st.columns(2)
    with left:
        st.subheader("Tasks by status")
        st.bar_chart(counts_frame(stats.get("tasks_by_status"), "status").set_index("status"))
    with right:
        st.subheader("Tasks by priority")
        st.bar_chart(counts_frame(stats.get("tasks_by_priority"), "priority").set_index("priority"))


# --------------------------------------------------------------------
# Tasks (shared widgets)
# --------------------------------------------------------------------

def load_users() -> List[Dict[str, Any]]:
    ok, users, _ = api_call("GET", "/users")
    return [u for u in (users or []) if u.get("active")] if ok else []


def render_task_actions(task: Dict[str, Any], key_prefix: str) -> None:
    """Claim and status buttons for one task."""
    cols = st.columns(4)
    i = 0
    if can_claim(task):
        if cols[i].button("Claim", key=f"{key_prefix}_claim_{task['id']}"):
            ok, _, message = api_call("PATCH", f"/tasks/{task['id']}/claim")
            if ok:
                st.success(f"Claimed '{task['title']}'")
                st.rerun()
            show_error(message, "claim")
        i += 1
    for target, label in status_actions(task.get("status")):
        if cols[i].button(label, key=f"{key_prefix}_{target}_{task['id']}"):
            ok, _, message = api_call("PATCH", f"/tasks/{task['id']}/status", json={"status": target})
            if ok:
                st.rerun()
            show_error(message, "status change")
        i += 1


def render_task_list(tasks: List[Dict[str, Any]], key_prefix: str, allow_delete: bool = False) -> None:
    if not tasks:
        st.info("No tasks.")
        return
    st.dataframe(tasks_frame(tasks), hide_index=True, use_container_width=True)
    for task in tasks:
        with st.expander(f"{task['title']} · {task.get('status')} · {task.get('priority')}"):
            if task.get("description"):
                st.write(task["description"])
            st.caption(f"Assignee: {task.get('assignee_name') or 'Unassigned'}"
                       f" · Due: {task.get('due_date') or '—'}")
            render_task_actions(task, key_prefix)
            if allow_delete and st.button("Delete task", key=f"{key_prefix}_del_{task['id']}"):
                ok, _, message = api_call("DELETE", f"/tasks/{task['id']}")
                if ok:
                    st.rerun()
                show_error(message, "delete task")


def render_new_task_form(project_id: str) -> None:
    role = get_role()
    users = load_users() if role == "tenant_admin" else []
    with st.form(f"new_task_{project_id}", clear_on_submit=True):
        title = st.text_input("Title")
        description = st.text_area("Description")
        priority = st.selectbox("Priority", PRIORITIES, index=1)
        due = st.date_input("Due date", value=None)
        if role == "tenant_admin":
            options = {"Unassigned": None}
            options.update({u["full_name"]: u["id"] for u in users})
            assignee = options[st.selectbox("Assignee", list(options))]
        else:
            assignee = get_user_id() if st.checkbox("Assign to me") else None
        submitted = st.form_submit_button("Create task")

    if submitted:
        if not title.strip():
            st.error("Title is required.")
            return
        payload: Dict[str, Any] = {"title": title, "description": description or None,
                                   "priority": priority, "assigned_to": assignee}
        if isinstance(due, date):
            payload["due_date"] = due.isoformat()
        ok, _, message = api_call("POST", f"/projects/{project_id}/tasks", json=payload)
        if ok:
            st.success("Task created.")
            st.rerun()
        show_error(message, "create task")


# --------------------------------------------------------------------
# Projects
# --------------------------------------------------------------------

def render_projects() -> None:
    if not require_auth():
        return
    st.header("Projects")
    is_admin = get_role() == "tenant_admin"

    status_filter = st.selectbox("Status", ["all"] + PROJECT_STATUSES)
    params = None if status_filter == "all" else {"status": status_filter}
    ok, projects, message = api_call("GET", "/projects", params=params)
    if not ok:
        show_error(message, "projects")
        return

    if is_admin:
        with st.expander("➕ New project"):
            with st.form("new_project", clear_on_submit=True):
                name = st.text_input("Name")
                description = st.text_area("Description")
                submitted = st.form_submit_button("Create project")
            if submitted:
                ok, _, message = api_call("POST", "/projects",
                                          json={"name": name, "description": description or None})
                if ok:
                    st.success("Project created.")
                    st.rerun()
                show_error(message, "create project")

    if not projects:
        st.info("No projects yet.")
        return

    summary = pd.DataFrame(projects)[["name", "status", "task_count", "completed_task_count"]]
    st.dataframe(summary, hide_index=True, use_container_width=True)

    names = {p["name"]: p for p in projects}
    selected = names[st.selectbox("Open project", list(names))]
    st.subheader(selected["name"])
    if selected.get("description"):
        st.write(selected["description"])

    if is_admin:
        cols = st.columns(2)
        with cols[0]:
            new_status = st.selectbox("Project status", PROJECT_STATUSES,
                                      index=PROJECT_STATUSES.index(selected["status"]))
            if new_status != selected["status"] and st.button("Update status"):
                ok, _, message = api_call("PUT", f"/projects/{selected['id']}", json={"status": new_status})
                if ok:
                    st.rerun()
                show_error(message, "update project")
        with cols[1]:
            if st.button("Delete project", type="secondary"):
                ok, _, message = api_call("DELETE", f"/projects/{selected['id']}")
                if ok:
                    st.rerun()
                show_error(message, "delete project")

    ok, tasks, message = api_call("GET", f"/projects/{selected['id']}/tasks")
    if not ok:
        show_error(message, "tasks")
        return
    shown = st.multiselect("Task status", TASK_STATUSES, default=TASK_STATUSES)
    render_task_list([t for t in tasks if t.get("status") in shown], key_prefix="proj", allow_delete=is_admin)

    with st.expander("➕ New task"):
        render_new_task_form(selected["id"])


# --------------------------------------------------------------------
# My Tasks
# --------------------------------------------------------------------

def render_my_tasks() -> None:
    if not require_auth():
        return
    st.header("My Tasks")

    ok, data, message = api_call("GET", "/my-tasks")
    if not ok:
        show_error(message, "my tasks")
        return

    mine, open_pool = data.get("my_tasks", []), data.get("open_tasks", [])
    assigned_tab, open_tab = st.tabs([f"Assigned to me ({len(mine)})", f"Open ({len(open_pool)})"])
    with assigned_tab:
        render_task_list(mine, key_prefix="mine")
    with open_tab:
        render_task_list(open_pool, key_prefix="open")


# --------------------------------------------------------------------
# Team (tenant admins)
# --------------------------------------------------------------------

def render_team() -> None:
    if not require_auth():
        return
    st.header("Team")

    ok, users, message = api_call("GET", "/users")
    if not ok:
        show_error(message, "users")
        return
    if users:
        st.dataframe(pd.DataFrame(users)[["full_name", "email", "role", "active"]],
                     hide_index=True, use_container_width=True)

    with st.expander("➕ Invite user"):
        with st.form("new_user", clear_on_submit=True):
            full_name = st.text_input("Full name")
            email = st.text_input("Email")
            password = st.text_input("Initial password", type="password")
            role = st.selectbox("Role", ["member", "tenant_admin"])
            submitted = st.form_submit_button("Create user")
        if submitted:
            ok, _, message = api_call("POST", "/users", json={
                "full_name": full_name, "email": email, "password": password, "role": role,
            })
            if ok:
                st.success("User created.")
                st.rerun()
            # 402 when the plan's user limit is reached
            show_error(message, "create user")

    others = [u for u in users or [] if u["id"] != get_user_id()]
    if not others:
        return
    st.subheader("Manage user")
    by_label = {f"{u['full_name']} <{u['email']}>": u for u in others}
    user = by_label[st.selectbox("User", list(by_label))]
    cols = st.columns(3)
    with cols[0]:
        target_role = "tenant_admin" if user["role"] == "member" else "member"
        if st.button(f"Make {target_role}"):
            ok, _, message = api_call("PUT", f"/users/{user['id']}", json={"role": target_role})
            if ok:
                st.rerun()
            show_error(message, "update user")
    with cols[1]:
        label = "Deactivate" if user["active"] else "Reactivate"
        if st.button(label):
            ok, _, message = api_call("PUT", f"/users/{user['id']}", json={"active": not user["active"]})
            if ok:
                st.rerun()
            show_error(message, "update user")
    with cols[2]:
        if st.button("Delete user"):
            ok, _, message = api_call("DELETE", f"/users/{user['id']}")
            if ok:
                st.rerun()
            show_error(message, "delete user")


# --------------------------------------------------------------------
# Tenants (system admins)
# --------------------------------------------------------------------

def render_tenants() -> None:
    if not require_auth():
        return
    st.header("Tenants")

    ok, tenants, message = api_call("GET", "/tenants")
    if not ok:
        show_error(message, "tenants")
        return
    if not tenants:
        st.info("No tenants registered.")
        return

    columns = ["name", "subdomain", "status", "plan", "user_count", "max_users", "project_count", "max_projects"]
    st.dataframe(pd.DataFrame(tenants)[columns], hide_index=True, use_container_width=True)

    by_label = {f"{t['name']} ({t['subdomain']})": t for t in tenants}
    tenant = by_label[st.selectbox("Tenant", list(by_label))]

    with st.form("tenant_admin_form"):
        plan = st.selectbox("Plan", ["free", "pro", "enterprise"],
                            index=["free", "pro", "enterprise"].index(tenant["plan"]))
        status = st.selectbox("Status", ["active", "suspended"],
                              index=["active", "suspended"].index(tenant["status"]))
        submitted = st.form_submit_button("Save")
    if submitted:
        changes = {}
        if plan != tenant["plan"]:
            changes["plan"] = plan
        if status != tenant["status"]:
            changes["status"] = status
        if changes:
            ok, _, message = api_call("PUT", f"/tenants/{tenant['id']}", json=changes)
            if ok:
                st.success("Tenant updated.")
                st.rerun()
            show_error(message, "update tenant")

    confirm = st.checkbox(f"I understand deleting {tenant['name']} removes all of its data")
    if st.button("Delete tenant", disabled=not confirm):
        ok, _, message = api_call("DELETE", f"/tenants/{tenant['id']}")
        if ok:
            st.rerun()
        show_error(message, "delete tenant")


# --------------------------------------------------------------------
# Activity (audit trail)
# --------------------------------------------------------------------

def render_activity() -> None:
    if not require_auth():
        return
    st.header("Activity")

    limit = st.slider("Entries", min_value=10, max_value=500, value=100, step=10)
    ok, entries, message = api_call("GET", "/audit-logs", params={"limit": limit})
    if not ok:
        show_error(message, "audit log")
        return
    if not entries:
        st.info("No activity recorded yet.")
        return

    df = pd.DataFrame(entries)
    columns = [c for c in ("created_at", "user_email", "action", "entity_type", "entity_id", "source_address")
               if c in df.columns]
    st.dataframe(df[columns], hide_index=True, use_container_width=True)


PAGES = {
    "Login": render_login,
    "Dashboard": render_dashboard,
    "Projects": render_projects,
    "My Tasks": render_my_tasks,
    "Team": render_team,
    "Tenants": render_tenants,
    "Activity": render_activity,
}


def main() -> None:
    # Must run before any widget so auth keys survive reruns
    init_auth_state()

    role = get_role() if is_authenticated() else None
    allowed = nav_items_for_role(role)
    if ss.get("nav_page") not in allowed:
        ss["nav_page"] = default_page(role)

    print(f"[ROUTING] page={ss['nav_page']} | token_present={is_authenticated()} | role={role}")

    render_sidebar()
    PAGES.get(ss.get("nav_page"), render_login)()


main()
