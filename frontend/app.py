# frontend/app.py
# CrowdFund - browse projects, pledge, post owner updates
#
# Run from repo root: streamlit run frontend/app.py

from __future__ import annotations

import sys
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

# streamlit puts frontend/ on sys.path, not the repo root
_ROOT = str(Path(__file__).resolve().parent.parent)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from frontend.auth import (  # noqa: E402
    clear_auth, get_current_user, init_auth_state, is_authenticated,
    is_session_resolving, pop_return_to, set_auth, set_return_to,
)
from frontend.config import ENABLE_DEBUG_UI, ENV, IS_DEV, get_api_base_url  # noqa: E402
from frontend import project_actions as actions  # noqa: E402
from frontend.routing import (  # noqa: E402
    CREATE_PAGE, DETAILS_PAGE, HOME_PAGE, LOADING_TEXT, SIGN_IN_PAGE, SIGN_UP_PAGE,
    apply_navigation, post_sign_in_destination, resolve_route,
)
from domains.funding.metrics import (  # noqa: E402
    filter_projects, format_money, funding_series, parse_timestamp, summarize,
)
from domains.funding.models.project import SORT_LABELS, SortOption  # noqa: E402

st.set_page_config(page_title="CrowdFund", page_icon="💡", layout="wide")


def init_state() -> None:
    ss = st.session_state

    init_auth_state()

    # Navigation - default is chosen in main() from the auth state
    ss.setdefault("nav_page", None)
    ss.setdefault("selected_project_id", None)

    # Project list: cached per sort key; search filters locally
    ss.setdefault("sort", SortOption.newest.value)
    ss.setdefault("projects_cache", None)  # {"sort": ..., "items": [...]}
    ss.setdefault("search_term", "")

    # Project details (refreshed after mutations)
    ss.setdefault("project_detail", None)

    # Deferred toast, shown after the next rerun
    ss.setdefault("_toast", None)


init_state()

ss = st.session_state


# --------------------------------------------------------------------
# Navigation helper (single source of truth)
# --------------------------------------------------------------------

def go_to(page: str, project_id: Optional[str] = None) -> None:
    """Set nav_page (and the selected project) and rerun immediately."""
    apply_navigation(ss, page, project_id)
    st.rerun()


def queue_toast(message: str, icon: str = "✅") -> None:
    ss["_toast"] = (message, icon)


def show_queued_toast() -> None:
    queued = ss.pop("_toast", None)
    if queued:
        message, icon = queued
        st.toast(message, icon=icon)


# --------------------------------------------------------------------
# Sidebar (navbar)
# --------------------------------------------------------------------

def render_sidebar() -> None:
    with st.sidebar:
        st.markdown("## 💡 CrowdFund")

        if is_authenticated():
            user = get_current_user() or {}
            st.caption(f"Signed in as **{user.get('email', '')}**")
            if st.button("Projects", use_container_width=True, key="nav_projects"):
                go_to(HOME_PAGE)
            if st.button("Start a Project", type="primary", use_container_width=True, key="nav_create"):
                go_to(CREATE_PAGE)
            st.markdown("---")
            if st.button("Sign Out", use_container_width=True, key="nav_sign_out"):
                clear_auth()
                ss["project_detail"] = None
                ss["projects_cache"] = None
                go_to(SIGN_IN_PAGE)
        else:
            if st.button("Sign In", use_container_width=True, key="nav_sign_in"):
                go_to(SIGN_IN_PAGE)
            if st.button("Sign Up", type="primary", use_container_width=True, key="nav_sign_up"):
                go_to(SIGN_UP_PAGE)

        if ENABLE_DEBUG_UI:
            st.markdown("---")
            with st.expander("Debug"):
                st.caption(f"**API:** {get_api_base_url()}")
                st.caption(f"**Environment:** {ENV}")
                st.caption(f"**Page:** {ss.get('nav_page')}")
                st.caption(f"**Token present:** {bool(ss.get('auth_token'))}")


# --------------------------------------------------------------------
# Projects
# --------------------------------------------------------------------

def _load_projects(sort: str) -> Optional[List[Dict[str, Any]]]:
    cache = ss.get("projects_cache")
    if cache and cache.get("sort") == sort:
        return cache["items"]
    result = actions.load_projects(sort)
    if not result.ok:
        st.error(result.message)
        return None
    ss["projects_cache"] = {"sort": sort, "items": result.data}
    return result.data


def render_project_card(project: Dict[str, Any]) -> None:
    summary = summarize(project)
    with st.container(border=True):
        title_col, badge_col = st.columns([5, 1])
        with title_col:
            st.subheader(project["title"])
        with badge_col:
            if summary.completed:
                st.success("Funded")

        st.write(project.get("description", ""))
        st.progress(summary.progress_width / 100.0)

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Raised", format_money(project.get("current_amount")))
        c2.metric("Goal", format_money(project.get("goal_amount")))
        c3.metric("Funded", f"{summary.percent_label}%")
        c4.metric("Backers", project.get("backer_count") or 0)
        st.caption(f"{summary.days_left} days left")

        if st.button("View project", key=f"view_{project['id']}"):
            go_to(DETAILS_PAGE, project["id"])


def render_projects() -> None:
    st.header("Projects")

    search_col, sort_col = st.columns([3, 1])
    with search_col:
        term = st.text_input("Search projects", key="search_term", placeholder="Search by title or description")
    with sort_col:
        options = [o.value for o in SortOption]
        sort = st.selectbox(
            "Sort by",
            options,
            index=options.index(ss.get("sort", SortOption.newest.value)),
            format_func=lambda v: SORT_LABELS[SortOption(v)],
        )
        ss["sort"] = sort

    projects = _load_projects(sort)
    if projects is None:
        return

    visible = filter_projects(projects, term)
    if not visible:
        st.info(actions.search_results_empty_text(term))
        if st.button("Start a Project", type="primary", key="empty_start"):
            go_to(CREATE_PAGE)
        return

    for project in visible:
        render_project_card(project)


# --------------------------------------------------------------------
# Project details
# --------------------------------------------------------------------

def _format_update_date(value: Any) -> str:
    try:
        ts = parse_timestamp(value)
    except ValueError:
        return str(value)
    return f"{ts:%B} {ts.day}, {ts.year}"


def render_funding_chart(pledges: List[Dict[str, Any]]) -> None:
    st.subheader("Funding Progress")
    points = funding_series(pledges)
    if not points:
        st.caption("No pledges yet")
        return
    df = pd.DataFrame(points)
    st.line_chart(df, x="created_at", y="total")
    with st.expander("Pledge history"):
        st.dataframe(
            df[["date", "total"]].rename(columns={"date": "Date", "total": "Cumulative total ($)"}),
            hide_index=True,
        )


def render_updates(project: Dict[str, Any]) -> None:
    user = get_current_user()
    st.subheader("Project Updates")

    if actions.can_post_update(project, user):
        with st.form("update_form", clear_on_submit=True):
            content = st.text_area("Share your progress...", key="update_content")
            submitted = st.form_submit_button("Post Update")
        if submitted:
            result = actions.submit_update(project, content, user)
            if result.redirect:
                go_to(result.redirect)
            if result.ok:
                if result.data is not None and ss.get("project_detail"):
                    ss["project_detail"]["updates"] = result.data
                queue_toast(result.message)
                st.rerun()
            st.toast(result.message, icon="⚠️")

    updates = project.get("updates") or []
    if not updates:
        st.caption("No updates yet")
    for update in updates:
        with st.container(border=True):
            st.write(update["content"])
            st.caption(_format_update_date(update.get("created_at")))


def render_pledge_section(project: Dict[str, Any]) -> None:
    summary = summarize(project)
    st.subheader("Support this project")

    if summary.completed:
        st.success("This project has been successfully funded!")
        st.write(f"Thank you to all {project.get('backer_count') or 0} backers who made this possible.")
        return

    st.caption(f"Remaining: {format_money(summary.remaining)}")
    actions.reset_pledge_form_if_queued(ss)
    with st.form("pledge_form", clear_on_submit=False):
        amount = st.number_input(
            "Pledge Amount ($)",
            min_value=actions.PLEDGE_MIN_AMOUNT,
            step=1.0,
            format="%.2f",
            key=actions.PLEDGE_AMOUNT_KEY,
        )
        submitted = st.form_submit_button("Back this project", type="primary")

    if not submitted:
        return

    result = actions.submit_pledge(project, amount, get_current_user())
    if result.redirect == SIGN_IN_PAGE:
        return_to = result.data or {"page": DETAILS_PAGE, "project_id": project["id"]}
        set_return_to(return_to["page"], return_to.get("project_id"))
        go_to(SIGN_IN_PAGE)
    if result.ok:
        if result.data is not None:
            ss["project_detail"] = result.data
        else:
            ss["project_detail"] = None
        queue_toast(result.message)
        actions.queue_pledge_form_reset(ss)
        st.rerun()
    if result.message == actions.PLEDGE_FAILED:
        st.toast(result.message, icon="⚠️")
    elif result.message:
        st.error(result.message)


def render_project_details() -> None:
    project_id = ss.get("selected_project_id")
    if st.button("← Back to Projects"):
        go_to(HOME_PAGE)
    if not project_id:
        st.info("Project not found")
        return

    project = ss.get("project_detail")
    if not project or project.get("id") != project_id:
        result = actions.load_project_detail(project_id)
        if not result.ok:
            st.error(result.message)
            return
        project = result.data
        ss["project_detail"] = project
        # list aggregates may be stale now
        ss["projects_cache"] = None

    summary = summarize(project)

    title_col, badge_col = st.columns([4, 1])
    with title_col:
        st.title(project["title"])
    with badge_col:
        if summary.completed:
            st.success("Project Successfully Funded!")

    c1, c2, c3 = st.columns(3)
    c1.metric("Raised", format_money(project.get("current_amount")), help=f"of {format_money(project.get('goal_amount'))} goal")
    c2.metric("Backers", project.get("backer_count") or 0)
    c3.metric("Days to go", summary.days_left)

    st.progress(summary.progress_width / 100.0)
    left, right = st.columns(2)
    left.caption(f"{summary.percent_label}% funded")
    right.caption(f"{summary.days_left} days left")

    render_funding_chart(project.get("pledges") or [])

    st.subheader("About this project")
    st.write(project.get("description", ""))

    render_updates(project)
    render_pledge_section(project)


# --------------------------------------------------------------------
# Create project
# --------------------------------------------------------------------

def render_create_project() -> None:
    st.header("Start a Project")

    with st.form("create_project_form"):
        title = st.text_input("Project Title")
        description = st.text_area("Description")
        goal_amount = st.number_input("Funding Goal ($)", min_value=1.0, step=0.01, format="%.2f")
        end_date = st.date_input("End Date", value=date.today() + timedelta(days=30))
        submitted = st.form_submit_button("Create Project", type="primary")

    if not submitted:
        return
    if not title.strip() or not description.strip():
        st.error("Please fill in the title and description.")
        return

    result = actions.create_project(get_current_user(), title, description, goal_amount, end_date)
    if result.ok:
        queue_toast("Project created")
        go_to(HOME_PAGE)
    if result.redirect:
        go_to(result.redirect)
    st.error(result.message)


# --------------------------------------------------------------------
# Sign in / Sign up
# --------------------------------------------------------------------

def _complete_sign_in(session: Dict[str, Any]) -> None:
    set_auth(session["access_token"], session.get("user") or {})
    page, project_id = post_sign_in_destination(pop_return_to())
    if IS_DEV:
        print(f"[ROUTING] signed in -> {page}")
    go_to(page, project_id)


def render_sign_in() -> None:
    st.header("Sign In")
    with st.form("sign_in_form"):
        email = st.text_input("Email", key="sign_in_email")
        password = st.text_input("Password", type="password", key="sign_in_password")
        submitted = st.form_submit_button("Sign In", type="primary")

    if submitted:
        result = actions.sign_in(email, password)
        if result.ok:
            _complete_sign_in(result.data)
        elif result.message:
            st.error(result.message)

    st.caption("Don't have an account?")
    if st.button("Sign Up", key="to_sign_up"):
        go_to(SIGN_UP_PAGE)


def render_sign_up() -> None:
    st.header("Sign Up")
    with st.form("sign_up_form"):
        email = st.text_input("Email", key="sign_up_email")
        password = st.text_input("Password", type="password", key="sign_up_password")
        submitted = st.form_submit_button("Sign Up", type="primary")

    if submitted:
        result = actions.sign_up(email, password)
        if result.ok and result.message:
            st.info(result.message)
        elif result.ok:
            _complete_sign_in(result.data)
        elif result.message:
            st.error(result.message)

    st.caption("Already have an account?")
    if st.button("Sign In", key="to_sign_in"):
        go_to(SIGN_IN_PAGE)


# --------------------------------------------------------------------
# Session resolution
# --------------------------------------------------------------------

def resolve_session() -> None:
    """Confirm a stored token with the backend; drop it if rejected."""
    user = actions.fetch_current_user()
    if user:
        set_auth(ss["auth_token"], user)
    else:
        clear_auth()


PAGES = {
    HOME_PAGE: render_projects,
    DETAILS_PAGE: render_project_details,
    CREATE_PAGE: render_create_project,
    SIGN_IN_PAGE: render_sign_in,
    SIGN_UP_PAGE: render_sign_up,
}


def main() -> None:
    show_queued_toast()

    decision = resolve_route(ss.get("nav_page"), is_authenticated(), is_session_resolving())

    # Log routing state on every rerun (never logs tokens/emails)
    print(
        f"[ROUTING] {datetime.now():%H:%M:%S} page={ss.get('nav_page')} -> {decision.page} | "
        f"token_present={bool(ss.get('auth_token'))} | loading={decision.loading}"
    )

    if decision.loading:
        placeholder = st.empty()
        placeholder.write(LOADING_TEXT)
        resolve_session()
        placeholder.empty()
        st.rerun()

    ss["nav_page"] = decision.page

    render_sidebar()
    PAGES[decision.page]()


if __name__ == "__main__":
    main()
