# zotero_patch/zotero_api/utils.py
#
#
# Imports
import json
import math
from typing import Dict, Any, Optional, List, Sequence
#
# 3rd-party Libraries
import httpx
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from ..Constants import BACKOFF_HEADER, RETRY_AFTER_HEADER, LAST_MODIFIED_VERSION_HEADER
from .exceptions import ProtocolValueError
from .schemas import PatchRecord, LibraryResponse, VersionSource, WriteReport
#
#######################################################################################################################
#
# Functions:

def parse_seconds_directive(headers: httpx.Headers, header_name: str) -> Optional[float]:
    """
    Reads a pacing directive ('Backoff' or 'Retry-After') given in seconds.

    Returns None when the header is absent. A present but non-numeric,
    negative or non-finite value raises ProtocolValueError.
    """
    raw_value = headers.get(header_name)
    if raw_value is None:
        return None
    try:
        seconds = float(raw_value.strip())
    except ValueError:
        raise ProtocolValueError(header_name, raw_value, "is not a number of seconds")
    if not math.isfinite(seconds) or seconds < 0:
        raise ProtocolValueError(header_name, raw_value, "is not a non-negative number of seconds")
    return seconds


def get_backoff_seconds(response: httpx.Response) -> Optional[float]:
    return parse_seconds_directive(response.headers, BACKOFF_HEADER)


def get_retry_after_seconds(response: httpx.Response) -> Optional[float]:
    return parse_seconds_directive(response.headers, RETRY_AFTER_HEADER)


def _version_from_header(response: httpx.Response) -> Optional[int]:
    raw_value = response.headers.get(LAST_MODIFIED_VERSION_HEADER)
    if raw_value is None:
        return None
    try:
        version = int(raw_value.strip())
    except ValueError:
        raise ProtocolValueError(LAST_MODIFIED_VERSION_HEADER, raw_value, "is not an integer version")
    if version < 0:
        raise ProtocolValueError(LAST_MODIFIED_VERSION_HEADER, raw_value, "is negative")
    return version


def _version_from_body(response: httpx.Response) -> Optional[int]:
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict) or "version" not in body:
        return None
    try:
        return LibraryResponse.model_validate(body).version
    except ValidationError:
        raise ProtocolValueError("version", body.get("version"), "is not an integer version")


def read_library_version(response: httpx.Response, source: VersionSource = "header") -> int:
    """
    Extracts the library version from a successful version-fetch response.

    'header' reads Last-Modified-Version, 'body' reads the JSON 'version'
    field, 'auto' tries the header first and falls back to the body.
    """
    version = None
    if source in ("header", "auto"):
        version = _version_from_header(response)
    if version is None and source in ("body", "auto"):
        version = _version_from_body(response)
    if version is None:
        field_name = "version" if source == "body" else LAST_MODIFIED_VERSION_HEADER
        raise ProtocolValueError(field_name, None, "is missing from the version response")
    return version


def batch_to_payload(batch: Sequence[PatchRecord]) -> List[Dict[str, Any]]:
    return [record.to_payload() for record in batch]


def parse_write_report(response: httpx.Response) -> Optional[WriteReport]:
    """Parses a multi-object write body. 204 and non-JSON bodies yield None."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return WriteReport.model_validate(response.json())
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.debug(f"Write response body was not a write report: {e}")
        return None

#
# End of utils.py
#######################################################################################################################
