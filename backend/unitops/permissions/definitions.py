# Overview: Closed set of page capabilities and their PageAccess flag columns.

from enum import Enum

from .categories import CapabilityCategory


class Capability(str, Enum):
    """Page capabilities a user can be granted through PageAccess."""
    SALES_ENTRY = "sales_entry"
    SALES_CONFIRM = "sales_confirm"
    SALES_OVERVIEW = "sales_overview"
    EXPENSE_ENTRY = "expense_entry"
    EXPENSE_OVERVIEW = "expense_overview"
    BUSINESS_PLAN_EDIT = "business_plan_edit"
    PLAN_OVERVIEW = "plan_overview"
    ADMIN = "admin"


# Capability -> PageAccess column. Every Capability must appear exactly once.
CAPABILITY_FLAGS: dict[Capability, str] = {
    Capability.SALES_ENTRY: "pg_sales",
    Capability.SALES_CONFIRM: "pg_sales_confirm",
    Capability.SALES_OVERVIEW: "pg_sales_overview",
    Capability.EXPENSE_ENTRY: "pg_expenses",
    Capability.EXPENSE_OVERVIEW: "pg_expenses_view",
    Capability.BUSINESS_PLAN_EDIT: "pg_business",
    Capability.PLAN_OVERVIEW: "pg_result",
    Capability.ADMIN: "pg_admin",
}

# Each capability is defined as: (capability, name, description, category)
CAPABILITY_DEFINITIONS = [
    (
        Capability.SALES_ENTRY,
        "Sales Entry",
        "Record point-of-sale entries for accessible units",
        CapabilityCategory.SALES,
    ),
    (
        Capability.SALES_CONFIRM,
        "Sales Confirmation",
        "Confirm (lock) and unlock recorded sales",
        CapabilityCategory.SALES,
    ),
    (
        Capability.SALES_OVERVIEW,
        "Sales Overview",
        "Browse sales across units and date ranges",
        CapabilityCategory.SALES,
    ),
    (
        Capability.EXPENSE_ENTRY,
        "Expense Entry",
        "Log expenses and attach receipt photos",
        CapabilityCategory.EXPENSES,
    ),
    (
        Capability.EXPENSE_OVERVIEW,
        "Expense Overview",
        "Browse expenses across units and date ranges",
        CapabilityCategory.EXPENSES,
    ),
    (
        Capability.BUSINESS_PLAN_EDIT,
        "Business Plan",
        "Enter monthly budget figures per unit",
        CapabilityCategory.PLANNING,
    ),
    (
        Capability.PLAN_OVERVIEW,
        "Plan Overview",
        "Budget versus actual reporting",
        CapabilityCategory.PLANNING,
    ),
    (
        Capability.ADMIN,
        "Administration",
        "Manage users and payment types",
        CapabilityCategory.ADMINISTRATION,
    ),
]
