# Overview: Utility functions for capability lookups and page-access serialization.

from .definitions import Capability, CAPABILITY_DEFINITIONS, CAPABILITY_FLAGS


def parse_capability(value) -> Capability | None:
    """Map a capability value ("sales_entry") to the enum, None if unknown."""
    if isinstance(value, Capability):
        return value
    try:
        return Capability(value)
    except ValueError:
        return None


def capabilities_from_flags(flags: dict) -> frozenset[Capability]:
    """
    Collect granted capabilities from a PageAccess-style mapping.

    Accepts either column names ("pg_sales") or capability values
    ("sales_entry") as keys; unknown keys are ignored.
    """
    granted = set()
    for capability, column in CAPABILITY_FLAGS.items():
        if flags.get(column) or flags.get(capability.value):
            granted.add(capability)
    return frozenset(granted)


def page_access_dict(granted) -> dict[str, bool]:
    """Serialize granted capabilities as {capability value: bool} for every capability."""
    return {capability.value: capability in granted for capability in Capability}


def get_capability_definition(capability):
    """Get full definition for a capability."""
    for cap, name, description, category in CAPABILITY_DEFINITIONS:
        if cap == capability:
            return {
                "code": cap.value,
                "name": name,
                "description": description,
                "category": category,
            }
    return None
