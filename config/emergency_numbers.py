"""Country-level emergency numbers keyed by ISO 3166-1 alpha-2 code.

The table is not exhaustive; it carries the primary all-services number for
each listed country.  Lookups that miss the table fall back to
``FALLBACK_COUNTRY_NAME`` / ``FALLBACK_NUMBER``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

__all__ = [
    "CountryEmergencyNumber",
    "EMERGENCY_NUMBERS",
    "FALLBACK_COUNTRY_NAME",
    "FALLBACK_NUMBER",
    "get_emergency_number",
]


@dataclass(frozen=True, slots=True)
class CountryEmergencyNumber:
    """Immutable descriptor for one country's emergency line."""

    code: str
    """ISO 3166-1 alpha-2 country code (upper case)."""

    name: str
    """Display name of the country."""

    number: str
    """Primary all-services emergency number."""


FALLBACK_COUNTRY_NAME: Final[str] = "your location"
FALLBACK_NUMBER: Final[str] = "911"


def _entry(code: str, name: str, number: str) -> tuple[str, CountryEmergencyNumber]:
    return code, CountryEmergencyNumber(code=code, name=name, number=number)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

EMERGENCY_NUMBERS: Final[dict[str, CountryEmergencyNumber]] = dict(
    [
        # North America
        _entry("US", "United States", "911"),
        _entry("CA", "Canada", "911"),
        _entry("MX", "Mexico", "911"),
        # South America
        _entry("AR", "Argentina", "911"),
        _entry("BO", "Bolivia", "110"),
        _entry("BR", "Brazil", "190"),
        _entry("CL", "Chile", "133"),
        _entry("CO", "Colombia", "123"),
        _entry("EC", "Ecuador", "911"),
        _entry("PY", "Paraguay", "911"),
        _entry("PE", "Peru", "105"),
        _entry("UY", "Uruguay", "911"),
        _entry("VE", "Venezuela", "911"),
        # Europe (112 is standard)
        _entry("ES", "Spain", "112"),
        _entry("FR", "France", "112"),
        _entry("DE", "Germany", "112"),
        _entry("IT", "Italy", "112"),
        _entry("GB", "United Kingdom", "999"),
        _entry("PT", "Portugal", "112"),
        # Asia
        _entry("JP", "Japan", "110"),
        _entry("CN", "China", "110"),
        _entry("IN", "India", "112"),
        # Oceania
        _entry("AU", "Australia", "000"),
        _entry("NZ", "New Zealand", "111"),
    ]
)


def get_emergency_number(code: str | None) -> CountryEmergencyNumber | None:
    """Return the entry for *code* (case-insensitive), or ``None``."""
    if not code:
        return None
    return EMERGENCY_NUMBERS.get(code.strip().upper())
