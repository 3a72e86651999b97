"""
CSV reader using pandas for batch ingestion.
"""

from pathlib import Path

import pandas as pd

from employee_sync.core.exceptions import CsvReadError
from employee_sync.observability.logger import get_logger

logger = get_logger(__name__)


class CSVReader:
    """
    Reads a CSV file into rows of column name -> string cell value.

    Every cell is read as text; blank cells become empty strings so type
    coercion is left entirely to the field mapper.
    """

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8-sig"):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
            encoding: File encoding (the default strips a UTF-8 BOM)
        """
        self.delimiter = delimiter
        self.encoding = encoding

    def read_frame(self, file_path: str | Path) -> pd.DataFrame:
        """
        Read a CSV file into a DataFrame of strings.

        Raises:
            CsvReadError: If the file is missing, empty or malformed
        """
        path = Path(file_path)
        try:
            df = pd.read_csv(
                path,
                sep=self.delimiter,
                dtype=str,
                keep_default_na=False,
                encoding=self.encoding,
                skipinitialspace=True,
            )
        except FileNotFoundError as e:
            raise CsvReadError(f"CSV file not found: {path}", file_path=str(path), original_error=e) from e
        except pd.errors.EmptyDataError as e:
            raise CsvReadError(f"CSV file is empty: {path}", file_path=str(path), original_error=e) from e
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise CsvReadError(f"Malformed CSV file {path}: {e}", file_path=str(path), original_error=e) from e

        df.columns = [str(column).strip() for column in df.columns]
        return df

    def read(self, file_path: str | Path) -> list[dict[str, str]]:
        """
        Read a CSV file into a list of rows.

        Args:
            file_path: Path to CSV file

        Returns:
            One dict per data row, keyed by header column

        Raises:
            CsvReadError: If the file cannot be read
        """
        df = self.read_frame(file_path)
        rows = df.to_dict(orient="records")
        logger.info(
            f"Read {len(rows)} rows from {Path(file_path).name}",
            extra={"source_file": str(file_path), "record_count": len(rows)},
        )
        return rows
