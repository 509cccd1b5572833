# Tests/conftest.py
#
# Shared fakes for the zotero_patch test-suite:
#   FakeClock / FakeSleeper: simulated time, so pacing waits are recorded instead of slept.
#   FakeZoteroServer: a scripted Zotero endpoint served through httpx.MockTransport. Each
#   request is recorded with the fake time it arrived at, so tests can check ordering and
#   that waits happened before the next request.
#
# Imports
import json
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional
#
# Third-Party Imports
import httpx
import pytest
#
# Local Imports
from zotero_patch.Sync.pacing import RetryPolicy
from zotero_patch.Sync.sync_protocol import SyncProtocol
from zotero_patch.zotero_api.client import ZoteroAPIClient
from zotero_patch.zotero_api.schemas import PatchRecord
#
#######################################################################################################################
#
# --- Fakes ---

class FakeClock:
    def __init__(self):
        self.now = 0.0


class FakeSleeper:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.clock.now += seconds


@dataclass
class RecordedRequest:
    time: float
    method: str
    path: str
    headers: httpx.Headers
    body: Any = None

    @property
    def version_header(self) -> Optional[int]:
        raw = self.headers.get("If-Unmodified-Since-Version")
        return int(raw) if raw is not None else None


@dataclass
class FakeZoteroServer:
    """
    Answers GETs from version_script and writes from submit_script (lists of
    httpx.Response, consumed in order). Once a script is empty the server
    answers 200 with its current version.
    """
    clock: FakeClock
    version: int = 100
    version_script: List[httpx.Response] = field(default_factory=list)
    submit_script: List[httpx.Response] = field(default_factory=list)
    requests: List[RecordedRequest] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append(RecordedRequest(self.clock.now, request.method, request.url.path,
                                             request.headers, body))
        if request.method == "GET":
            if self.version_script:
                return self.version_script.pop(0)
            return httpx.Response(200, headers={"Last-Modified-Version": str(self.version)}, json=[])
        if self.submit_script:
            return self.submit_script.pop(0)
        return httpx.Response(200, json={"successful": {}, "unchanged": {}, "failed": {}})

    @property
    def version_requests(self) -> List[RecordedRequest]:
        return [r for r in self.requests if r.method == "GET"]

    @property
    def submit_requests(self) -> List[RecordedRequest]:
        return [r for r in self.requests if r.method != "GET"]


# --- Fixtures ---

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock) -> FakeSleeper:
    return FakeSleeper(clock)


@pytest.fixture
def server(clock) -> FakeZoteroServer:
    return FakeZoteroServer(clock=clock)


@pytest.fixture
def transport(server) -> httpx.MockTransport:
    return httpx.MockTransport(server.handler)


@pytest.fixture
def api_client(transport) -> ZoteroAPIClient:
    return ZoteroAPIClient(group_id="12345", api_token="test-token", transport=transport)


@pytest.fixture
def policy() -> RetryPolicy:
    # No jitter so waits are exact
    return RetryPolicy(max_transient_retries=3, base_backoff_seconds=1.0, max_backoff_seconds=30.0,
                       min_backoff_seconds=0.5, jitter=False)


@pytest.fixture
def protocol(api_client, policy, sleeper) -> SyncProtocol:
    return SyncProtocol(api_client, policy=policy, sleeper=sleeper)


@pytest.fixture
def make_records() -> Callable[[int], List[PatchRecord]]:
    def _make(count: int, start: int = 0) -> List[PatchRecord]:
        return [
            PatchRecord(key=f"ITEM{i:04d}", title=f"Title {i}", extra=f"Extra {i}")
            for i in range(start, start + count)
        ]
    return _make


@pytest.fixture
def version_response() -> Callable[..., httpx.Response]:
    def _make(version: int, backoff: Optional[str] = None, status: int = 200) -> httpx.Response:
        headers = {"Last-Modified-Version": str(version)}
        if backoff is not None:
            headers["Backoff"] = backoff
        return httpx.Response(status, headers=headers, json=[])
    return _make


@pytest.fixture
def status_response() -> Callable[..., httpx.Response]:
    def _make(status: int, **headers: str) -> httpx.Response:
        # Keyword names map to headers: retry_after -> Retry-After
        wire_headers = {name.replace("_", "-").title(): value for name, value in headers.items()}
        return httpx.Response(status, headers=wire_headers, text=f"status {status}")
    return _make

#
# End of conftest.py
#######################################################################################################################
