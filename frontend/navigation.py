# frontend/navigation.py
# Pure (Streamlit-free) helpers used by app.py: role-based navigation,
# task status buttons and table shaping. Kept separate so they can be unit tested.

from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

PUBLIC_PAGES = ["Login"]

# Page -> roles allowed to see it
PAGE_ROLES: Dict[str, Tuple[str, ...]] = {
    "Dashboard": ("system_admin", "tenant_admin", "member"),
    "Projects": ("tenant_admin", "member"),
    "My Tasks": ("tenant_admin", "member"),
    "Team": ("tenant_admin",),
    "Tenants": ("system_admin",),
    "Activity": ("system_admin", "tenant_admin"),
}

# Mirrors the backend task state machine (backend/models.py)
TASK_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "todo": ("in_progress",),
    "in_progress": ("todo", "completed"),
    "completed": ("in_progress",),
}

STATUS_LABELS = {
    "todo": "Move to To Do",
    "in_progress": "Start",
    "completed": "Complete",
}

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

TASK_COLUMNS = ["title", "project_name", "status", "priority", "assignee_name", "due_date"]


def nav_items_for_role(role: Optional[str]) -> List[str]:
    """Sidebar entries for a role; unauthenticated users only get Login."""
    if not role:
        return list(PUBLIC_PAGES)
    return [page for page, roles in PAGE_ROLES.items() if role in roles]


def default_page(role: Optional[str]) -> str:
    items = nav_items_for_role(role)
    return items[0] if items else "Login"


def status_actions(status: str) -> List[Tuple[str, str]]:
    """
    Buttons to offer for a task in `status`.

    Returns:
        [(target_status, label), ...] following the allowed transitions
    """
    return [(target, STATUS_LABELS[target]) for target in TASK_TRANSITIONS.get(status, ())]


def can_claim(task: Dict[str, Any]) -> bool:
    return not task.get("assigned_to")


def tasks_frame(tasks: List[Dict[str, Any]]) -> pd.DataFrame:
    """Tasks as a display table, highest priority first."""
    if not tasks:
        return pd.DataFrame(columns=TASK_COLUMNS)
    df = pd.DataFrame(tasks)
    for col in TASK_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df["_rank"] = df["priority"].map(PRIORITY_ORDER).fillna(len(PRIORITY_ORDER))
    df = df.sort_values(["_rank", "title"], kind="stable").drop(columns="_rank")
    df["assignee_name"] = df["assignee_name"].fillna("Unassigned")
    return df[TASK_COLUMNS].reset_index(drop=True)


def counts_frame(counts: Dict[str, int], label: str) -> pd.DataFrame:
    """{key: n} breakdowns from /dashboard/stats as a two-column table."""
    return pd.DataFrame(
        [{label: key, "count": value} for key, value in (counts or {}).items()],
        columns=[label, "count"],
    )


def usage_percent(used: int, limit: Optional[int]) -> float:
    """Fraction of a quota in use, clamped to [0, 1] for st.progress."""
    if not limit:
        return 1.0 if used else 0.0
    return max(0.0, min(1.0, used / limit))
