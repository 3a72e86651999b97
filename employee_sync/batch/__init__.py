"""
Batch ingest and extract of employee CSV files.
"""

from .extract import EmployeeExtractService
from .pipeline import IngestPipeline, generate_batch_id
from .readers import CSVReader
from .writers import CSVWriter

__all__ = [
    "IngestPipeline",
    "EmployeeExtractService",
    "generate_batch_id",
    "CSVReader",
    "CSVWriter",
]
