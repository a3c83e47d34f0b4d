"""The closed set of asset categories.

Category names arrive from the URL path, so this allow-list is the only thing
standing between a request and the table name used in a query. Validate here
before touching storage.
"""

from .errors import InvalidCategory

CATEGORIES: tuple[str, ...] = (
    "assets",
    "employees",
    "maintenance_logs",
    "documents",
    "depreciation_history",
    "it_hardware",
    "software_license",
    "locations",
    "machinery_equipment",
    "digital_media",
    "vehicles",
    "real_estate",
    "furniture",
    "financial_assets",
    "infrastructure",
    "tools",
    "leased_assets",
    "intellectual_property",
)

_CATEGORY_SET = frozenset(CATEGORIES)


def is_valid(name: object) -> bool:
    return isinstance(name, str) and name in _CATEGORY_SET


def require_category(name: object) -> str:
    if not is_valid(name):
        raise InvalidCategory(category=name)
    return name
