"""Consolidation of enriched operations and the display report pipeline"""

from .consolidator import (
    ConsolidatedPosition,
    ConsolidationResult,
    build_consolidated_views,
    consolidate_operations,
)
from .pipeline import DisplayPipeline, process_operations

__all__ = [
    "ConsolidatedPosition",
    "ConsolidationResult",
    "DisplayPipeline",
    "build_consolidated_views",
    "consolidate_operations",
    "process_operations",
]
