"""Emission factor tables and category taxonomy.

All values are illustrative constants, not researched factors. The tables are
read-only process-wide configuration: mappings are wrapped in
``MappingProxyType`` and ordered tables are tuples, so nothing in the package
can mutate them at runtime.

Canonical taxonomy (lower-case):
    fuel, groceries, dining, travel, retail, utilities, electronics,
    clothing, entertainment, healthcare, education

Anything that cannot be resolved to one of these lands in
:data:`DEFAULT_CATEGORY`.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

DEFAULT_CATEGORY: str = "retail"

# ---------------------------------------------------------------------------
# Spend-based factors (kg CO2e per dollar)
# ---------------------------------------------------------------------------

SPEND_FACTORS: Mapping[str, float] = MappingProxyType(
    {
        "fuel": 0.27,
        "groceries": 0.095,
        "dining": 0.17,
        "travel": 0.18,
        "retail": 0.065,
        "utilities": 0.12,
        "electronics": 0.07,
        "clothing": 0.05,
        "entertainment": 0.035,
        "healthcare": 0.045,
        "education": 0.025,
    }
)

# ---------------------------------------------------------------------------
# Unit-based factors (kg CO2e per physical unit)
# ---------------------------------------------------------------------------

UNIT_FACTORS: Mapping[str, float] = MappingProxyType(
    {
        # Fuel and energy
        "gasoline_gallon": 8.89,
        "diesel_gallon": 10.16,
        "electricity_kwh": 0.4,
        "natural_gas_therm": 5.3,
        # Transportation
        "flight_passenger_mile": 0.255,
        "ridehailing_mile": 0.4,
        # Food, per kilogram
        "beef_kg": 27.0,
        "dairy_kg": 3.2,
        "poultry_kg": 6.9,
        "vegetables_kg": 2.0,
        "grains_kg": 1.4,
    }
)

# Caller-facing unit descriptors mapped onto canonical unit keys. Keys are in
# the normalized form produced by ``normalize_unit`` (lower-case, ``_`` joins).
UNIT_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "gallon": "gasoline_gallon",
        "gallons": "gasoline_gallon",
        "gal": "gasoline_gallon",
        "gasoline_gallons": "gasoline_gallon",
        "diesel_gallons": "diesel_gallon",
        "kwh": "electricity_kwh",
        "kilowatt_hour": "electricity_kwh",
        "kilowatt_hours": "electricity_kwh",
        "therm": "natural_gas_therm",
        "therms": "natural_gas_therm",
        "passenger_mile": "flight_passenger_mile",
        "passenger_miles": "flight_passenger_mile",
        "flight_mile": "flight_passenger_mile",
        "rideshare_mile": "ridehailing_mile",
        "ridehailing_miles": "ridehailing_mile",
        "kg_beef": "beef_kg",
        "kg_dairy": "dairy_kg",
        "kg_poultry": "poultry_kg",
        "kg_vegetables": "vegetables_kg",
        "kg_grains": "grains_kg",
    }
)

# ---------------------------------------------------------------------------
# Merchant substring → category
# ---------------------------------------------------------------------------

# Walked in order; the first key contained in the normalized merchant name
# wins. Reordering entries changes classification results.
MERCHANT_CATEGORIES: tuple[tuple[str, str], ...] = (
    # Gas stations
    ("shell", "fuel"),
    ("exxon", "fuel"),
    ("chevron", "fuel"),
    ("bp", "fuel"),
    ("mobil", "fuel"),
    ("speedway", "fuel"),
    ("citgo", "fuel"),
    ("valero", "fuel"),
    ("gas", "fuel"),
    ("fuel", "fuel"),
    # Airlines
    ("american airlines", "travel"),
    ("delta", "travel"),
    ("united", "travel"),
    ("southwest", "travel"),
    ("jetblue", "travel"),
    ("alaska airlines", "travel"),
    ("spirit", "travel"),
    ("frontier", "travel"),
    # Grocery stores
    ("whole foods", "groceries"),
    ("kroger", "groceries"),
    ("safeway", "groceries"),
    ("publix", "groceries"),
    ("wegmans", "groceries"),
    ("trader joe", "groceries"),
    ("costco", "groceries"),
    ("walmart", "retail"),
    ("target", "retail"),
    # Food & beverage
    ("starbucks", "dining"),
    ("mcdonalds", "dining"),
    ("subway", "dining"),
    ("chipotle", "dining"),
    ("panera", "dining"),
    ("dunkin", "dining"),
    # Retail
    ("amazon", "retail"),
    ("ebay", "retail"),
    ("best buy", "electronics"),
    ("apple", "electronics"),
    ("nike", "clothing"),
    ("adidas", "clothing"),
)

# ---------------------------------------------------------------------------
# MCC → category
# ---------------------------------------------------------------------------

MCC_CATEGORIES: Mapping[str, str] = MappingProxyType(
    {
        "5812": "dining",  # eating places, restaurants
        "5814": "dining",  # fast food
        "5411": "groceries",  # grocery stores, supermarkets
        "5651": "clothing",  # family clothing stores
        "5732": "electronics",  # electronics stores
        "4111": "travel",  # local commuter transport
        "4121": "travel",  # taxicabs, limousines
        "4511": "travel",  # airlines
        "5541": "fuel",  # service stations
        "5542": "fuel",  # automated fuel dispensers
        "7999": "entertainment",  # recreation services
        "4900": "utilities",  # electric, gas, water
        "8062": "healthcare",  # hospitals
        "8220": "education",  # colleges, universities
    }
)


def normalize_unit(unit: str) -> str:
    """Return the lookup form of a unit descriptor (``"Passenger-Mile"`` → ``"passenger_mile"``)."""

    return "_".join(unit.strip().lower().replace("-", " ").split())


def unit_factor_key(unit: str | None) -> str | None:
    """Resolve a caller unit descriptor to a key of :data:`UNIT_FACTORS`."""

    if not unit:
        return None
    key = normalize_unit(unit)
    if key in UNIT_FACTORS:
        return key
    return UNIT_ALIASES.get(key)


__all__ = [
    "DEFAULT_CATEGORY",
    "MCC_CATEGORIES",
    "MERCHANT_CATEGORIES",
    "SPEND_FACTORS",
    "UNIT_ALIASES",
    "UNIT_FACTORS",
    "normalize_unit",
    "unit_factor_key",
]
