"""Catalog of Ticketmaster markets supported for event discovery."""

from .models import Region

ALL_REGIONS: tuple[Region, ...] = tuple(
    Region(id=code, name=name, country_code=code)
    for code, name in (
        ("US", "United States"),
        ("GB", "United Kingdom"),
        ("CA", "Canada"),
        ("AU", "Australia"),
        ("NZ", "New Zealand"),
        ("IE", "Ireland"),
        ("DE", "Germany"),
        ("FR", "France"),
        ("ES", "Spain"),
        ("IT", "Italy"),
        ("NL", "Netherlands"),
        ("BE", "Belgium"),
        ("SE", "Sweden"),
        ("DK", "Denmark"),
        ("NO", "Norway"),
        ("FI", "Finland"),
    )
)

_BY_COUNTRY = {region.country_code: region for region in ALL_REGIONS}

DEFAULT_REGION = _BY_COUNTRY["GB"]


def region_for(country_code: str) -> Region | None:
    """Look up a region by its country code (case-insensitive)."""
    return _BY_COUNTRY.get(country_code.strip().upper())
