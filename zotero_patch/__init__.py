# zotero_patch/__init__.py
# Description: Bulk-update Zotero group library items through the Web API.
from loguru import logger

__version__ = "0.1.0"

# Silent when imported as a library; Logging_Config.setup_logger() turns output on
logger.disable("zotero_patch")
