"""
Delta detection between consecutive ingest batches.
"""

from .detector import DeltaDetector, DetectionOptions, compare_snapshots

__all__ = [
    "DeltaDetector",
    "DetectionOptions",
    "compare_snapshots",
]
