"""
constants.py — Fixed identifiers for the two district layers and the 311
request types.
"""

from __future__ import annotations

# ── District layers ───────────────────────────────────────────────────────────
# Fine-grained neighborhood councils and coarse-grained city council districts.
NC_LAYER = "nc"
CC_LAYER = "cc"
LAYERS: tuple[str, ...] = (NC_LAYER, CC_LAYER)

# ── Request types ─────────────────────────────────────────────────────────────
# Category labels as they appear in the `type` property of request features.
REQUEST_TYPES: frozenset[str] = frozenset(
    {
        "Bulky Items",
        "Dead Animal Removal",
        "Electronic Waste",
        "Feedback",
        "Graffiti Removal",
        "Homeless Encampment",
        "Illegal Dumping Pickup",
        "Metal/Household Appliances",
        "Multiple Streetlight Issue",
        "Other",
        "Report Water Waste",
        "Single Streetlight Issue",
    }
)
