# zotero_patch/zotero_api/exceptions.py
#
#
#######################################################################################################################
#
# Functions:

class ZoteroPatchError(Exception):
    """Base exception for every error raised by zotero_patch."""
    pass

class ConfigurationError(ZoteroPatchError):
    """Raised when required configuration is missing or invalid."""
    pass

class RecordSourceError(ZoteroPatchError):
    """Raised when the update file cannot be read."""
    pass

class MalformedRowError(RecordSourceError):
    """Raised when an input row cannot be mapped to a PatchRecord."""
    def __init__(self, row_number: int, row: list, message: str):
        super().__init__(f"Malformed row {row_number}: {message} (row={row!r})")
        self.row_number = row_number
        self.row = row

class ZoteroAPIError(ZoteroPatchError):
    """Base exception for errors talking to the Zotero API."""
    pass

class APIConnectionError(ZoteroAPIError):
    """Raised for network or connection issues."""
    pass

class ProtocolValueError(ZoteroAPIError):
    """Raised when a pacing directive or library version cannot be parsed."""
    def __init__(self, field_name: str, raw_value, message: str = "could not be parsed"):
        super().__init__(f"Invalid value for '{field_name}': {raw_value!r} {message}")
        self.field_name = field_name
        self.raw_value = raw_value

#
# End of zotero_patch/zotero_api/exceptions.py
########################################################################################################################
