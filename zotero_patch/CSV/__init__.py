# zotero_patch/CSV/__init__.py
from .csv_reader import CSVRecordSource, read_patch_records

__all__ = ["CSVRecordSource", "read_patch_records"]
