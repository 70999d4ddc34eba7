# Overview: Page capability package.
# Re-exports all public APIs for short imports.

from .categories import CapabilityCategory
from .definitions import Capability, CAPABILITY_FLAGS, CAPABILITY_DEFINITIONS
from .helpers import (
    parse_capability,
    capabilities_from_flags,
    page_access_dict,
    get_capability_definition,
)

__all__ = [
    "CapabilityCategory",
    "Capability",
    "CAPABILITY_FLAGS",
    "CAPABILITY_DEFINITIONS",
    "parse_capability",
    "capabilities_from_flags",
    "page_access_dict",
    "get_capability_definition",
]
