"""
errors.py — Exception taxonomy for the request map core.

Every failure raised by the geometry, district and counting modules derives
from RequestMapError, so the HTTP layer can translate them in one place.
None of these are transient; callers must not retry.
"""

from __future__ import annotations


class RequestMapError(Exception):
    """Base class for all request map errors."""


class InvalidGeometry(RequestMapError, ValueError):
    """A ring has fewer than 3 points, a polygon has no rings, or a
    coordinate is not a finite number."""


class InvalidLayerData(RequestMapError, ValueError):
    """District or count data could not be validated at load time."""


class UnknownCategory(RequestMapError, ValueError):
    """A request record carries a category outside the known request types."""


class UnknownDistrict(RequestMapError, LookupError):
    """A selector references a district id the layer does not know."""

    def __init__(self, layer: str, district_id: object) -> None:
        self.layer = layer
        self.district_id = district_id
        super().__init__(f"Unknown district {district_id!r} in layer {layer!r}")


class LayerNotLoaded(RequestMapError, LookupError):
    """A query named a layer that has no loaded district index."""

    def __init__(self, layer: str) -> None:
        self.layer = layer
        super().__init__(f"District layer {layer!r} is not loaded")
