# Constants.py
# Description: Constants for the application
#
# Imports
#
# 3rd-Party Imports
#
# Local Imports
#
########################################################################################################################
#
# Functions:

# --- API ---
DEFAULT_API_BASE_URL = "https://api.zotero.org"
ZOTERO_API_VERSION = "3"
# Maximum number of objects the API accepts in a single write request
MAX_BATCH_SIZE = 50

# --- Headers ---
BACKOFF_HEADER = "Backoff"
RETRY_AFTER_HEADER = "Retry-After"
LAST_MODIFIED_VERSION_HEADER = "Last-Modified-Version"
IF_UNMODIFIED_SINCE_VERSION_HEADER = "If-Unmodified-Since-Version"
API_VERSION_HEADER = "Zotero-API-Version"

# --- Status codes the sync protocol reacts to ---
HTTP_OK = 200
HTTP_NO_CONTENT = 204
HTTP_PRECONDITION_FAILED = 412
HTTP_TOO_MANY_REQUESTS = 429
SUBMIT_SUCCESS_CODES = frozenset({HTTP_OK, HTTP_NO_CONTENT})

# --- Environment variables ---
ENV_API_TOKEN = "ZOTERO_API_TOKEN"
ENV_GROUP_ID = "ZOTERO_GROUP_ID"
ENV_CSV_PATH = "ZOTERO_CSV_PATH"
ENV_API_BASE_URL = "ZOTERO_API_BASE_URL"
ENV_LOG_LEVEL = "ZOTERO_LOG_LEVEL"
ENV_CONFIG_PATH = "ZOTERO_PATCH_CONFIG"

# --- CSV ---
CSV_REQUIRED_COLUMNS = ("key", "title", "extra")

# --- Exit codes ---
EXIT_OK = 0
EXIT_SYNC_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INPUT_ERROR = 3
EXIT_CANCELLED = 130

#
# End of Constants.py
#######################################################################################################################
