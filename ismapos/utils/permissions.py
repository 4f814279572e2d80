"""Role and permission checks for dashboard pages and backend resources."""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Sequence

SUPERADMIN = "superadmin"
ALWAYS_ALLOWED = {"/", "/profile"}

_SALES_PAGES = ["/sales", "/sales/entry", "/sales/bill/:billNumber"]
_INVENTORY_PAGES = [
    "/inventory/products",
    "/inventory/product/add",
    "/inventory/product/edit/:id",
    "/inventory/purchase",
    "/inventory/purchases",
]
_ADMIN_PAGES = [
    "/",
    "/profile",
    *_SALES_PAGES,
    *_INVENTORY_PAGES,
    "/expenses",
    "/expenses/add",
    "/expenses/edit/:id",
    "/reports",
    "/reports/opening-balance",
    "/users",
    "/users/add",
    "/users/edit/:id",
    "/settings",
]

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    SUPERADMIN: list(_ADMIN_PAGES),
    "admin": list(_ADMIN_PAGES),
    "cashier": ["/", "/profile", *_SALES_PAGES],
    "warehouse_manager": ["/", "/profile", *_INVENTORY_PAGES],
}

ACTION_PATHS: Dict[str, List[str]] = {
    "sales:view": [
        "/sales",
        "/sales/bill/:billNumber",
        "/sales/payment/:billNumber/:paymentIndex",
        "/sales/payments/:billNumber",
    ],
    "sales:create": ["/sales/entry"],
    "sales:update": ["/sales/edit/:id"],
    "sales:cancel": ["/sales"],
    "sales:add_payment": ["/sales"],
    "products:view": ["/inventory/products"],
    "products:create": ["/inventory/product/add"],
    "products:update": ["/inventory/product/edit/:id"],
    "products:delete": ["/inventory/products"],
    "purchases:view": [
        "/inventory/purchases",
        "/inventory/purchase/view/:id",
        "/inventory/purchase/payment/:purchaseId/:paymentIndex",
        "/inventory/purchase/payments/:purchaseId",
    ],
    "purchases:create": ["/inventory/purchase"],
    "purchases:update": ["/inventory/purchase/edit/:id"],
    "purchases:cancel": ["/inventory/purchases"],
    "purchases:add_payment": ["/inventory/purchases"],
    "expenses:view": ["/expenses"],
    "expenses:create": ["/expenses/add"],
    "expenses:update": ["/expenses/edit/:id"],
    "expenses:delete": ["/expenses"],
    "users:view": ["/users"],
    "users:create": ["/users/add"],
    "users:update": ["/users/edit/:id"],
    "users:delete": ["/users"],
    "settings:view": ["/settings"],
    "settings:update": ["/settings"],
    "reports:view": ["/reports"],
    "opening_balance:view": ["/reports/opening-balance"],
    "opening_balance:create": ["/reports/opening-balance"],
    "opening_balance:update": ["/reports/opening-balance"],
    "opening_balance:delete": ["/reports/opening-balance"],
    "bank_accounts:view": ["/settings"],
    "bank_accounts:create": ["/settings"],
    "bank_accounts:update": ["/settings"],
    "bank_accounts:delete": ["/settings"],
    "cards:view": ["/settings"],
    "cards:create": ["/settings"],
    "cards:update": ["/settings"],
    "cards:delete": ["/settings"],
    "backup:export": ["/settings"],
}

# resource -> substrings of permissions that grant it implicitly
IMPLIED_VIEWS: Dict[str, Sequence[str]] = {
    "products:view": ("sales", "purchases"),
    "cards:view": ("sales", "purchases", "expenses"),
    "bank_accounts:view": ("sales", "purchases", "expenses"),
    "expense_categories:view": ("expenses",),
    "categories:view": ("products",),
    "brands:view": ("products",),
    "suppliers:view": ("purchases",),
    "settings:view": ("settings",),
}


def route_matches(pattern: str, path: str) -> bool:
    """``/sales/bill/:billNumber`` matches ``/sales/bill/B-001``."""

    if pattern == path:
        return True
    regex = re.sub(r":[^/]+", "[^/]+", pattern)
    return re.fullmatch(regex, path) is not None


def _any_route(patterns: Iterable[str], path: str) -> bool:
    return any(route_matches(p, path) for p in patterns)


def has_permission(role: Optional[str], path: str, permissions: Optional[List[str]] = None) -> bool:
    """Can a user with ``role``/``permissions`` open the dashboard page ``path``?

    An explicit permission list is strict: role defaults are only used for
    legacy users that have none.
    """

    if role == SUPERADMIN:
        return True
    if path in ALWAYS_ALLOWED:
        return True

    if permissions is not None:
        if _any_route(permissions, path):
            return True
        for perm in permissions:
            if ":" not in perm:
                continue
            module, action = perm.split(":", 1)
            if module in path and action in ("cancel", "delete", "edit") and f"/{action}" in path:
                return True
        return any(_any_route(ACTION_PATHS.get(perm, []), path) for perm in permissions)

    return _any_route(ROLE_PERMISSIONS.get(role or "", []), path)


def has_resource_permission(role: Optional[str], resource: str, permissions: Optional[List[str]] = None) -> bool:
    """Can the user act on ``resource`` (e.g. ``"sales:cancel"``)?"""

    if role == SUPERADMIN:
        return True
    if permissions is None:
        return role == "admin"
    if not permissions:
        return False
    if resource in permissions:
        return True
    for perm in permissions:
        if perm.endswith(":*") and resource.startswith(perm[:-2]):
            return True
    grants = IMPLIED_VIEWS.get(resource)
    if grants:
        return any(word in perm for perm in permissions for word in grants)
    return False
