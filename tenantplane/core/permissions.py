"""
RBAC (Role-Based Access Control) catalog seeded into every tenant database
"""

from enum import Enum
from typing import Dict, Set


class Permission(str, Enum):
    """Permission definitions"""
    # Timesheet permissions
    VIEW_TIMESHEETS = "view-timesheets"
    CREATE_TIMESHEETS = "create-timesheets"
    EDIT_OWN_TIMESHEETS = "edit-own-timesheets"
    EDIT_ALL_TIMESHEETS = "edit-all-timesheets"
    APPROVE_TIMESHEETS = "approve-timesheets"
    DELETE_TIMESHEETS = "delete-timesheets"

    # Expense permissions
    VIEW_EXPENSES = "view-expenses"
    CREATE_EXPENSES = "create-expenses"
    EDIT_OWN_EXPENSES = "edit-own-expenses"
    EDIT_ALL_EXPENSES = "edit-all-expenses"
    APPROVE_EXPENSES = "approve-expenses"
    DELETE_EXPENSES = "delete-expenses"

    # Management permissions
    VIEW_REPORTS = "view-reports"
    MANAGE_USERS = "manage-users"
    MANAGE_PROJECTS = "manage-projects"
    MANAGE_TASKS = "manage-tasks"
    MANAGE_LOCATIONS = "manage-locations"


OWNER_ROLE = "Owner"
ADMIN_ROLE = "Admin"
MANAGER_ROLE = "Manager"
TECHNICIAN_ROLE = "Technician"

# Roles that count as a tenant administrator
ADMINISTRATIVE_ROLES = (OWNER_ROLE, ADMIN_ROLE)

# Role permission mapping
ROLE_PERMISSIONS: Dict[str, Set[Permission]] = {
    # Owners and admins have all permissions
    OWNER_ROLE: set(Permission),
    ADMIN_ROLE: set(Permission),
    MANAGER_ROLE: {
        Permission.VIEW_TIMESHEETS,
        Permission.CREATE_TIMESHEETS,
        Permission.EDIT_OWN_TIMESHEETS,
        Permission.EDIT_ALL_TIMESHEETS,
        Permission.APPROVE_TIMESHEETS,
        Permission.VIEW_EXPENSES,
        Permission.CREATE_EXPENSES,
        Permission.EDIT_OWN_EXPENSES,
        Permission.EDIT_ALL_EXPENSES,
        Permission.APPROVE_EXPENSES,
        Permission.VIEW_REPORTS,
    },
    TECHNICIAN_ROLE: {
        Permission.VIEW_TIMESHEETS,
        Permission.CREATE_TIMESHEETS,
        Permission.EDIT_OWN_TIMESHEETS,
        Permission.VIEW_EXPENSES,
        Permission.CREATE_EXPENSES,
        Permission.EDIT_OWN_EXPENSES,
    },
}


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role (case-insensitive)"""
    for name, permissions in ROLE_PERMISSIONS.items():
        if name.lower() == (role or "").lower():
            return permissions
    return set()


def canonical_role(label: str) -> str:
    """Map a free-form user role label onto a seeded role name"""
    for name in ROLE_PERMISSIONS:
        if name.lower() == (label or "").strip().lower():
            return name
    return TECHNICIAN_ROLE
