"""
Batch data sink writers.
"""

from .csv_writer import CSVWriter

__all__ = [
    "CSVWriter",
]
