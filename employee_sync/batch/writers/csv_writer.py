"""
CSV writer using pandas for extract files.
"""

from pathlib import Path

import pandas as pd

from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)


class CSVWriter:
    """
    Writes rows of column name -> value to a CSV file with a fixed header.
    """

    def __init__(self, delimiter: str = ","):
        self.delimiter = delimiter

    def write(self, file_path: str | Path, columns: list[str], rows: list[dict]) -> int:
        """
        Write rows to file_path, creating parent directories as needed.

        Missing or None values are written as blank cells.

        Args:
            file_path: Destination file
            columns: Header, in output order
            rows: Data rows

        Returns:
            Number of data rows written
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        df = pd.DataFrame(rows, columns=columns)
        df.to_csv(path, sep=self.delimiter, index=False, na_rep="")

        logger.info(
            f"Wrote {len(df)} rows to {path.name}",
            extra={"target_file": str(path), "record_count": len(df)},
        )
        return len(df)
