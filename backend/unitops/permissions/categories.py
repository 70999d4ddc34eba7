# Overview: Capability category constants for grouping page flags in the UI.


class CapabilityCategory:
    """Capability categories for organization and UI display."""
    SALES = "SALES"
    EXPENSES = "EXPENSES"
    PLANNING = "PLANNING"
    ADMINISTRATION = "ADMINISTRATION"
