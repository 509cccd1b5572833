# zotero_patch/zotero_api/client.py
#
#
# Imports
from typing import Optional, Dict, Sequence, TYPE_CHECKING
#
# 3rd-party Libraries
import httpx
from loguru import logger
#
# Local Imports
from ..Constants import (
    DEFAULT_API_BASE_URL, API_VERSION_HEADER, ZOTERO_API_VERSION, IF_UNMODIFIED_SINCE_VERSION_HEADER,
)
from .exceptions import APIConnectionError
from .schemas import PatchRecord, WriteMethod
from .utils import batch_to_payload
if TYPE_CHECKING:
    from ..config import ZoteroSettings
#
########################################################################################################################
#
# Functions:

class ZoteroAPIClient:
    """
    Transport shell for one Zotero group library.

    Holds the bearer token and the group's base URL and performs the two
    physical calls the sync protocol needs. Status codes are returned to the
    caller untouched; only transport failures raise.
    """

    def __init__(
        self,
        group_id: str,
        api_token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        version_path: str = "/collections",
        write_path: str = "/items",
        write_method: WriteMethod = "POST",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.group_id = str(group_id)
        self.api_token = api_token
        self.base_url = f"{base_url.rstrip('/')}/groups/{self.group_id}"
        self.timeout = timeout
        self.version_path = version_path
        self.write_path = write_path
        self.write_method = write_method
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: "ZoteroSettings",
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> "ZoteroAPIClient":
        return cls(
            group_id=settings.group_id,
            api_token=settings.api_token.get_secret_value(),
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            version_path=settings.version_path,
            write_path=settings.write_path,
            write_method=settings.write_method,
            transport=transport,
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            API_VERSION_HEADER: ZOTERO_API_VERSION,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ZoteroAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        url = f"{self.base_url}{endpoint}"
        try:
            response = await client.request(method, endpoint, **kwargs)
        except httpx.RequestError as e: # Covers ConnectError, TimeoutException, etc.
            raise APIConnectionError(f"Connection error to {url}: {e}") from e
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    async def fetch_version(self) -> httpx.Response:
        return await self._send("GET", self.version_path)

    async def submit_batch(self, batch: Sequence[PatchRecord], version: int) -> httpx.Response:
        headers = {IF_UNMODIFIED_SINCE_VERSION_HEADER: str(version)}
        return await self._send(self.write_method, self.write_path,
                                json=batch_to_payload(batch), headers=headers)

#
# End of client.py
########################################################################################################################
