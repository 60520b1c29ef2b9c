"""Per-user map collection: CRUD, search and cached AI summaries."""

from __future__ import annotations

from mapdiary.maps.models import FinancialSummary, MapDoc, MapType
from mapdiary.maps.service import MapsService, MapSummary

__all__ = ["FinancialSummary", "MapDoc", "MapSummary", "MapType", "MapsService"]
