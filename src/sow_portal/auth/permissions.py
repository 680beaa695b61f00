"""Role-based feature flags for the dashboard.

Role definitions:
- Leadership: full access to all features (acts as admin).
- SA (Solutions Architect): dashboard, deals and SOW generation.
- AE (Account Executive): dashboard and deals only; deal artifacts become
  visible once deal desk approves the SOW.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from src.sow_portal.auth.roles import UserRole, coerce_role, role_from_groups
from src.sow_portal.deals.progress import DealStatus, can_view_artifacts_tab


class DealTab(str, Enum):
    SUMMARY = "summary"
    CALLS = "calls"
    ARTIFACTS = "artifacts"


BASE_DEAL_TABS: tuple[DealTab, ...] = (DealTab.SUMMARY, DealTab.CALLS)


@dataclass(frozen=True)
class Permissions:
    """Feature access flags for one role."""

    role: UserRole | None
    can_access_dashboard: bool = True
    can_access_deals: bool = True
    can_access_knowledge_base: bool = False
    can_access_templates: bool = False
    can_access_integrations: bool = False
    can_access_manage_users: bool = False
    can_generate_sow: bool = False
    can_assign_deals: bool = False
    visible_sidebar_items: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_leadership(self) -> bool:
        return self.role == UserRole.LEADERSHIP

    @property
    def is_sa(self) -> bool:
        return self.role == UserRole.SA

    @property
    def is_ae(self) -> bool:
        return self.role == UserRole.AE

    def can_access_route(self, route: str) -> bool:
        """Check a dashboard route; routes without a rule are allowed."""
        path = route if route.startswith("/") else f"/{route}"

        exact = {
            "/": self.can_access_dashboard,
            "/deals": self.can_access_deals,
            "/notifications": True,
            "/knowledge-base": self.can_access_knowledge_base,
            "/templates": self.can_access_templates,
            "/integrations": self.can_access_integrations,
            "/users": self.can_access_manage_users,
            "/generate-sow": self.can_generate_sow,
        }
        if path in exact:
            return exact[path]

        prefixes = (
            ("/deals/", self.can_access_deals),
            ("/generate-sow/", self.can_generate_sow),
            ("/templates/", self.can_access_templates),
            ("/users/", self.can_access_manage_users),
        )
        for prefix, allowed in prefixes:
            if path.startswith(prefix):
                return allowed
        return True


def build_permissions(role: UserRole | str | None) -> Permissions:
    """Derive the permission flags for a role."""
    resolved = coerce_role(role)
    is_leadership = resolved == UserRole.LEADERSHIP
    is_sa = resolved == UserRole.SA

    sidebar = ["Dashboard", "Deals", "Notifications"]
    if is_leadership:
        sidebar += ["Knowledge Base", "Templates", "Integrations", "Manage Users"]

    return Permissions(
        role=resolved,
        can_access_knowledge_base=is_leadership,
        can_access_templates=is_leadership,
        can_access_integrations=is_leadership,
        can_access_manage_users=is_leadership,
        can_generate_sow=is_leadership or is_sa,
        can_assign_deals=is_leadership,
        visible_sidebar_items=tuple(sidebar),
    )


def permissions_for_groups(groups: Iterable[str] | None) -> Permissions:
    return build_permissions(role_from_groups(groups))


def visible_deal_tabs(
    role: UserRole | str | None,
    status: DealStatus | str | None,
) -> list[DealTab]:
    tabs = list(BASE_DEAL_TABS)
    if can_view_artifacts_tab(role, status):
        tabs.append(DealTab.ARTIFACTS)
    return tabs


def resolve_active_tab(
    requested: str | None,
    role: UserRole | str | None,
    status: DealStatus | str | None,
    visible: list[DealTab] | None = None,
) -> DealTab:
    """Pick the tab to show for a ``?tab=`` request.

    Unknown tabs and tabs hidden for the caller fall back to summary.
    ``visible`` overrides the tabs derived from role and status.
    """
    try:
        tab = DealTab(requested) if requested else DealTab.SUMMARY
    except ValueError:
        return DealTab.SUMMARY
    if tab not in (visible if visible is not None else visible_deal_tabs(role, status)):
        return DealTab.SUMMARY
    return tab
