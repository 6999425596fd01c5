# frontend/routing.py
# Auth-gated page routing (pure; no Streamlit calls)

from dataclasses import dataclass
from typing import Any, Dict, MutableMapping, Optional, Tuple

HOME_PAGE = "Projects"
DETAILS_PAGE = "Project Details"
CREATE_PAGE = "Create Project"
SIGN_IN_PAGE = "Sign In"
SIGN_UP_PAGE = "Sign Up"

# Private views need a session; public views are for signed-out users only
PRIVATE_PAGES = (HOME_PAGE, DETAILS_PAGE, CREATE_PAGE)
PUBLIC_PAGES = (SIGN_IN_PAGE, SIGN_UP_PAGE)

LOADING_TEXT = "Loading..."


@dataclass(frozen=True)
class RouteDecision:
    page: str
    loading: bool = False
    redirected: bool = False


def default_page(authenticated: bool) -> str:
    return HOME_PAGE if authenticated else SIGN_IN_PAGE


def resolve_route(page: Optional[str], authenticated: bool, resolving: bool = False) -> RouteDecision:
    """
    Decide which view to render for the requested page.

    - resolving session -> stay on the page, render the loading placeholder
    - private page without a session -> Sign In
    - public page with a session -> Projects
    - unknown/missing page -> the default for the auth state
    """
    if page not in PRIVATE_PAGES and page not in PUBLIC_PAGES:
        return RouteDecision(default_page(authenticated), loading=resolving, redirected=page is not None)

    if resolving:
        return RouteDecision(page, loading=True)

    if page in PRIVATE_PAGES and not authenticated:
        return RouteDecision(SIGN_IN_PAGE, redirected=True)

    if page in PUBLIC_PAGES and authenticated:
        return RouteDecision(HOME_PAGE, redirected=True)

    return RouteDecision(page)


def post_sign_in_destination(return_to: Optional[Dict[str, Any]]) -> Tuple[str, Optional[str]]:
    """(page, project_id) to show after sign-in: the stored return path, else home."""
    if return_to and return_to.get("page") in PRIVATE_PAGES:
        return return_to["page"], return_to.get("project_id")
    return HOME_PAGE, None


def apply_navigation(state: MutableMapping[str, Any], page: str, project_id: Optional[str] = None) -> None:
    """
    Record a navigation in session state.

    Opening another project drops the cached detail. Going back to Projects
    drops the cached list so amounts and backer counts are fetched again.
    """
    state["nav_page"] = page
    if page == DETAILS_PAGE:
        if project_id != state.get("selected_project_id"):
            state["project_detail"] = None
        state["selected_project_id"] = project_id
    elif page == HOME_PAGE:
        state["projects_cache"] = None
