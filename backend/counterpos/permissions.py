"""
Role permission matrix constants

WHY: Centralized module/action definitions ensure consistency across the
application. Routes ask "can role R perform action A on module M"; the
answer lives in RolePermission rows seeded from DEFAULT_ROLE_PERMISSIONS.

DESIGN PRINCIPLES:
- Roles are plain enumerated names, not a class hierarchy
- Every matrix carries all modules and all actions (missing = denied)
- Admin has every permission by default
"""

# =============================================================================
# MODULES / ACTIONS
# =============================================================================

class Module:
    """Application modules guarded by the role matrix."""
    PRODUCTS = "Products"
    INVOICES = "Invoices"
    INVENTORY = "Inventory"
    CUSTOMERS = "Customers"
    SALES = "Sales"
    REPORTS = "Reports"
    STAFF = "Staff"
    SETTINGS = "Settings"


MODULES = (
    Module.PRODUCTS,
    Module.INVOICES,
    Module.INVENTORY,
    Module.CUSTOMERS,
    Module.SALES,
    Module.REPORTS,
    Module.STAFF,
    Module.SETTINGS,
)

ACTIONS = ("view", "add", "edit", "delete")


def _row(view=False, add=False, edit=False, delete=False) -> dict:
    return {"view": view, "add": add, "edit": edit, "delete": delete}


# =============================================================================
# DEFAULT ROLE MATRICES
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    "Admin": {module: _row(True, True, True, True) for module in MODULES},

    "Manager": {
        Module.PRODUCTS: _row(True, True, True, False),
        Module.INVOICES: _row(True, True, True, False),
        Module.INVENTORY: _row(True, True, True, False),
        Module.CUSTOMERS: _row(True, True, True, False),
        Module.SALES: _row(view=True),
        Module.REPORTS: _row(view=True),
        Module.STAFF: _row(),
        Module.SETTINGS: _row(),
    },

    "Cashier": {
        # Ring up invoices, look up stock, register walk-in customers
        Module.PRODUCTS: _row(view=True),
        Module.INVOICES: _row(view=True, add=True),
        Module.INVENTORY: _row(view=True),
        Module.CUSTOMERS: _row(view=True, add=True, edit=True),
        Module.SALES: _row(),
        Module.REPORTS: _row(),
        Module.STAFF: _row(),
        Module.SETTINGS: _row(),
    },

    "Accountant": {
        Module.PRODUCTS: _row(view=True),
        Module.INVOICES: _row(view=True),
        Module.INVENTORY: _row(view=True),
        Module.CUSTOMERS: _row(view=True),
        Module.SALES: _row(view=True),
        Module.REPORTS: _row(view=True, add=True),
        Module.STAFF: _row(),
        Module.SETTINGS: _row(),
    },
}


# =============================================================================
# HELPERS
# =============================================================================

def empty_matrix() -> dict:
    return {module: _row() for module in MODULES}


def normalize_matrix(raw) -> dict:
    """
    Complete a (possibly partial) matrix: unknown modules/actions are
    rejected, missing ones are filled in as False.
    """
    if not isinstance(raw, dict):
        raise ValueError("permissions must be an object")

    matrix = empty_matrix()
    for module, actions in raw.items():
        if module not in MODULES:
            raise ValueError(f"Unknown module: {module}")
        if not isinstance(actions, dict):
            raise ValueError(f"permissions.{module} must be an object")
        for action, allowed in actions.items():
            if action not in ACTIONS:
                raise ValueError(f"Unknown action: {action}")
            if not isinstance(allowed, bool):
                raise ValueError(f"permissions.{module}.{action} must be a boolean")
            matrix[module][action] = allowed
    return matrix
