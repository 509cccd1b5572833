# csv_reader.py
# Description: Reads the update CSV into an ordered list of PatchRecords.
#
# Imports
import csv
from pathlib import Path
from typing import List, Dict, Union
#
# 3rd-Party Imports
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from ..Constants import CSV_REQUIRED_COLUMNS
from ..zotero_api.exceptions import RecordSourceError, MalformedRowError
from ..zotero_api.schemas import PatchRecord
#
########################################################################################################################
#
# Functions:

class CSVRecordSource:
    """
    Reads a CSV with a header row naming at least the key, title and extra
    columns (any order, case-insensitive; other columns are ignored).
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8-sig"):
        self.path = Path(path).expanduser()
        self.encoding = encoding

    def _column_indexes(self, header: List[str]) -> Dict[str, int]:
        normalized = [column.strip().lower() for column in header]
        indexes = {}
        for column in CSV_REQUIRED_COLUMNS:
            if column not in normalized:
                raise MalformedRowError(1, header, f"header is missing the '{column}' column")
            indexes[column] = normalized.index(column)
        return indexes

    def extract(self) -> List[PatchRecord]:
        """Reads every row. Raises MalformedRowError on the first row that cannot be mapped."""
        logger.info(f"Extracting update records from: {self.path}")
        try:
            with open(self.path, "r", encoding=self.encoding, newline="") as csvfile:
                reader = csv.reader(csvfile)
                header = next(reader, None)
                if header is None:
                    logger.warning(f"{self.path} is empty; no records to sync")
                    return []
                indexes = self._column_indexes(header)

                records: List[PatchRecord] = []
                for row in reader:
                    if not any(cell.strip() for cell in row):
                        continue # blank line
                    records.append(self._to_record(row, indexes, reader.line_num))
        except FileNotFoundError as e:
            raise RecordSourceError(f"CSV file not found: {self.path}") from e
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise RecordSourceError(f"Could not read CSV file {self.path}: {e}") from e

        logger.info(f"Extracted {len(records)} records from {self.path.name}")
        return records

    @staticmethod
    def _to_record(row: List[str], indexes: Dict[str, int], line_number: int) -> PatchRecord:
        values = {}
        for column, index in indexes.items():
            if index >= len(row):
                raise MalformedRowError(line_number, row, f"missing the '{column}' field")
            values[column] = row[index]
        try:
            return PatchRecord(**values)
        except ValidationError as e:
            raise MalformedRowError(line_number, row, e.errors()[0].get("msg", str(e))) from e


def read_patch_records(path: Union[str, Path]) -> List[PatchRecord]:
    return CSVRecordSource(path).extract()

#
# End of csv_reader.py
#######################################################################################################################
