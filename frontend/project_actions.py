"""
frontend/project_actions.py

Backend calls behind each view. Functions return an ActionResult and never
render anything themselves; the views decide between st.error (fetches) and
st.toast (mutations). Client-side checks here are conveniences; the backend
repeats them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, MutableMapping, Optional

from frontend.api_client import api_request, error_message
from frontend.config import IS_DEV
from frontend.routing import DETAILS_PAGE, HOME_PAGE, SIGN_IN_PAGE
from domains.funding.metrics import pledge_limit_error

LOAD_PROJECTS_FAILED = "Failed to load projects. Please try again later."
LOAD_DETAILS_FAILED = "Failed to load project details"
PROJECT_NOT_FOUND = "Project not found"
PLEDGE_THANKS = "Thank you for your pledge!"
PLEDGE_FAILED = "Failed to process pledge. Please try again."
UPDATE_POSTED = "Update posted successfully"
UPDATE_FAILED = "Failed to post update. Please try again."
CREATE_REQUIRES_LOGIN = "You must be logged in to create a project"
CREATE_FAILED = "Failed to create project. Please try again."

# Pledge form widget
PLEDGE_MIN_AMOUNT = 1.0
PLEDGE_AMOUNT_KEY = "pledge_amount"
PLEDGE_RESET_FLAG = "_clear_pledge_amount"


@dataclass
class ActionResult:
    ok: bool
    data: Any = None
    message: Optional[str] = None
    # Page to navigate to (e.g. Sign In when a session is required)
    redirect: Optional[str] = None


def _session_lost(resp) -> bool:
    return resp is not None and resp.status_code == 401


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
def load_projects(sort: str = "newest") -> ActionResult:
    resp = api_request("GET", "/api/projects", params={"sort": sort})
    if resp is None or resp.status_code != 200:
        return ActionResult(ok=False, message=LOAD_PROJECTS_FAILED)
    return ActionResult(ok=True, data=resp.json() or [])


def load_project_detail(project_id: str) -> ActionResult:
    """Project row with its updates and pledges."""
    resp = api_request("GET", f"/api/projects/{project_id}")
    if resp is not None and resp.status_code == 404:
        return ActionResult(ok=False, message=PROJECT_NOT_FOUND)
    if resp is None or resp.status_code != 200:
        return ActionResult(ok=False, message=LOAD_DETAILS_FAILED)
    return ActionResult(ok=True, data=resp.json())


def load_updates(project_id: str) -> ActionResult:
    resp = api_request("GET", f"/api/projects/{project_id}/updates")
    if resp is None or resp.status_code != 200:
        return ActionResult(ok=False, message=UPDATE_FAILED)
    return ActionResult(ok=True, data=resp.json() or [])


def fetch_current_user() -> Optional[Dict[str, Any]]:
    """Confirm the stored token with GET /auth/me; None when it is not accepted."""
    resp = api_request("GET", "/auth/me")
    if resp is None or resp.status_code != 200:
        return None
    return resp.json()


# ---------------------------------------------------------
# Mutations
# ---------------------------------------------------------
def parse_amount(raw: Any) -> Optional[float]:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def queue_pledge_form_reset(state: MutableMapping[str, Any]) -> None:
    """Ask for an empty pledge amount on the next run (the widget is already drawn)."""
    state[PLEDGE_RESET_FLAG] = True


def reset_pledge_form_if_queued(state: MutableMapping[str, Any]) -> None:
    """Call before the pledge widget is created."""
    if state.pop(PLEDGE_RESET_FLAG, None):
        state.pop(PLEDGE_AMOUNT_KEY, None)


def submit_pledge(project: Dict[str, Any], raw_amount: Any, user: Optional[Dict[str, Any]]) -> ActionResult:
    """
    Pledge toward `project`.

    No network call is made when there is no user (redirect to Sign In with
    a return path) or when the amount is not positive or exceeds the
    remaining amount. On success the whole project detail is re-fetched.
    """
    if not user:
        return ActionResult(ok=False, redirect=SIGN_IN_PAGE, data={"page": DETAILS_PAGE, "project_id": project["id"]})

    amount = parse_amount(raw_amount)
    if amount is None:
        return ActionResult(ok=False, message="Please enter a valid pledge amount")

    refusal = pledge_limit_error(amount, project.get("current_amount") or 0, project.get("goal_amount") or 0)
    if refusal:
        return ActionResult(ok=False, message=refusal)

    resp = api_request("POST", f"/api/projects/{project['id']}/pledges", json={"amount": amount})
    if _session_lost(resp):
        return ActionResult(ok=False, redirect=SIGN_IN_PAGE, message=PLEDGE_FAILED)
    if resp is None or resp.status_code != 200:
        if IS_DEV:
            print(f"[API] Pledge failed: {error_message(resp, 'no response')}")
        return ActionResult(ok=False, message=PLEDGE_FAILED)

    refreshed = load_project_detail(project["id"])
    return ActionResult(ok=True, data=refreshed.data if refreshed.ok else None, message=PLEDGE_THANKS)


def can_post_update(project: Dict[str, Any], user: Optional[Dict[str, Any]]) -> bool:
    """The update form is only offered to the project's owner."""
    return bool(user) and user.get("id") == project.get("user_id")


def submit_update(project: Dict[str, Any], content: str, user: Optional[Dict[str, Any]]) -> ActionResult:
    """Post an owner update; on success re-fetch only the updates list."""
    if not can_post_update(project, user):
        return ActionResult(ok=False, message=UPDATE_FAILED)
    content = (content or "").strip()
    if not content:
        return ActionResult(ok=False, message="Update content cannot be empty")

    resp = api_request("POST", f"/api/projects/{project['id']}/updates", json={"content": content})
    if _session_lost(resp):
        return ActionResult(ok=False, redirect=SIGN_IN_PAGE, message=UPDATE_FAILED)
    if resp is None or resp.status_code != 200:
        return ActionResult(ok=False, message=UPDATE_FAILED)

    updates = load_updates(project["id"])
    return ActionResult(ok=True, data=updates.data if updates.ok else None, message=UPDATE_POSTED)


def create_project(
    user: Optional[Dict[str, Any]],
    title: str,
    description: str,
    goal_amount: Any,
    end_date: date,
) -> ActionResult:
    """Create a project; navigates to the list on success."""
    if not user:
        return ActionResult(ok=False, message=CREATE_REQUIRES_LOGIN)

    goal = parse_amount(goal_amount)
    if goal is None:
        return ActionResult(ok=False, message=CREATE_FAILED)

    payload = {
        "title": title,
        "description": description,
        "goal_amount": goal,
        "end_date": end_date.isoformat() if isinstance(end_date, date) else str(end_date),
    }
    resp = api_request("POST", "/api/projects", json=payload)
    if _session_lost(resp):
        return ActionResult(ok=False, redirect=SIGN_IN_PAGE, message=CREATE_REQUIRES_LOGIN)
    if resp is None or resp.status_code != 200:
        return ActionResult(ok=False, message=CREATE_FAILED)
    return ActionResult(ok=True, data=resp.json(), redirect=HOME_PAGE)


# ---------------------------------------------------------
# Auth
# ---------------------------------------------------------
def sign_in(email: str, password: str) -> ActionResult:
    if not email or not password:
        return ActionResult(ok=False, message="Please enter email and password.")
    resp = api_request("POST", "/auth/signin", json={"email": email, "password": password})
    if resp is None:
        return ActionResult(ok=False)
    if resp.status_code != 200:
        return ActionResult(ok=False, message=error_message(resp, "Invalid email or password"))
    return ActionResult(ok=True, data=resp.json())


def sign_up(email: str, password: str) -> ActionResult:
    """data is the session; message is set when email confirmation is pending."""
    if not email or not password:
        return ActionResult(ok=False, message="Please enter email and password.")
    resp = api_request("POST", "/auth/signup", json={"email": email, "password": password})
    if resp is None:
        return ActionResult(ok=False)
    if resp.status_code != 200:
        return ActionResult(ok=False, message=error_message(resp, "Failed to sign up"))
    session = resp.json()
    if session.get("confirmation_required") or not session.get("access_token"):
        return ActionResult(ok=True, data=session, message="Check your email to confirm your account, then sign in.")
    return ActionResult(ok=True, data=session)


def search_results_empty_text(term: str) -> str:
    if term and term.strip():
        return "No projects match your search criteria"
    return "No projects available yet. Be the first to create one!"
