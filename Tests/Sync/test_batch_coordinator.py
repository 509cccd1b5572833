# Tests/Sync/test_batch_coordinator.py
#
# Tests for splitting records into batches and applying them in order against the fake server.
#
# Imports
import asyncio
#
# Third-Party Imports
import httpx
import pytest
#
# Local Imports
from zotero_patch.Sync.batch_coordinator import BatchCoordinator, chunk_records
from zotero_patch.Sync.exceptions import BatchSyncError, SyncCancelledError, SyncError, RetryExhaustedError
#
#######################################################################################################################
#
# --- chunk_records ---

def test_chunk_records_empty_input_yields_no_batches():
    assert list(chunk_records([])) == []


def test_chunk_records_exact_multiple(make_records):
    batches = list(chunk_records(make_records(100)))
    assert [len(b) for b in batches] == [50, 50]


def test_chunk_records_rejects_oversized_batches(make_records):
    with pytest.raises(ValueError):
        list(chunk_records(make_records(3), size=51))
    with pytest.raises(ValueError):
        list(chunk_records(make_records(3), size=0))


def test_coordinator_rejects_invalid_batch_size(protocol):
    with pytest.raises(ValueError):
        BatchCoordinator(protocol, batch_size=60)


# --- sync_all ---

@pytest.mark.asyncio
async def test_sync_all_120_records_in_three_ordered_batches(protocol, server, make_records):
    records = make_records(120)
    coordinator = BatchCoordinator(protocol)

    report = await coordinator.sync_all(records)

    assert [r.method for r in server.requests] == ["GET", "POST"] * 3
    submitted = [request.body for request in server.submit_requests]
    assert [len(body) for body in submitted] == [50, 50, 20]
    flattened = [item["Key"] for body in submitted for item in body]
    assert flattened == [record.key for record in records]
    assert [b.index for b in report.batches] == [0, 1, 2]
    assert report.records_applied == 120
    assert report.total_records == 120


@pytest.mark.asyncio
async def test_sync_all_empty_input_makes_no_requests(protocol, server):
    report = await BatchCoordinator(protocol).sync_all([])
    assert server.requests == []
    assert report.batches == []


@pytest.mark.asyncio
async def test_conflict_in_middle_batch_refetches_before_resubmitting(protocol, server, make_records,
                                                                      status_response, version_response):
    server.version_script = [version_response(1), version_response(2), version_response(5)]
    server.submit_script = [httpx.Response(204), status_response(412)]

    report = await BatchCoordinator(protocol).sync_all(make_records(60))

    assert [r.method for r in server.requests] == ["GET", "POST", "GET", "POST", "GET", "POST"]
    assert [r.version_header for r in server.submit_requests] == [1, 2, 5]
    assert report.batches[1].conflicts == 1


@pytest.mark.asyncio
async def test_fatal_status_stops_run_without_touching_other_batches(protocol, server, make_records,
                                                                     status_response):
    server.submit_script = [httpx.Response(204), status_response(400)]

    with pytest.raises(BatchSyncError) as exc_info:
        await BatchCoordinator(protocol).sync_all(make_records(150))

    error = exc_info.value
    assert error.batch_index == 1
    assert error.status_code == 400
    # Batch 0 applied once, batch 1 rejected once, batch 2 never attempted
    assert len(server.submit_requests) == 2
    assert [b.status for b in error.report.batches] == ["success", "failure"]
    assert error.report.records_applied == 50
    assert "batch 1" in str(error)


@pytest.mark.asyncio
async def test_exhausted_version_fetch_is_reported_with_batch_index(protocol, server, make_records,
                                                                   status_response):
    server.submit_script = [httpx.Response(204)]
    server.version_script = [httpx.Response(200, headers={"Last-Modified-Version": "1"})] + \
                            [status_response(500) for _ in range(10)]

    with pytest.raises(RetryExhaustedError) as exc_info:
        await BatchCoordinator(protocol).sync_all(make_records(75))

    assert exc_info.value.batch_index == 1
    assert exc_info.value.report.batches[-1].status == "failure"


@pytest.mark.asyncio
async def test_malformed_directive_aborts_run_with_batch_index(protocol, server, make_records):
    server.submit_script = [httpx.Response(200, headers={"Backoff": "later"}, json={})]

    with pytest.raises(SyncError) as exc_info:
        await BatchCoordinator(protocol).sync_all(make_records(10))

    assert exc_info.value.batch_index == 0
    assert "Backoff" in exc_info.value.message


@pytest.mark.asyncio
async def test_unreadable_backoff_after_success_still_counts_batch_as_applied(protocol, server, make_records):
    server.submit_script = [httpx.Response(204), httpx.Response(200, headers={"Backoff": "later"}, json={})]

    with pytest.raises(BatchSyncError) as exc_info:
        await BatchCoordinator(protocol).sync_all(make_records(75))

    error = exc_info.value
    assert error.batch_index == 1
    assert error.applied is not None
    # Both batches reached the server; the run stops before a third would start
    assert len(server.submit_requests) == 2
    assert [b.status for b in error.report.batches] == ["success", "success"]
    assert error.report.batches[1].http_status == 200
    assert "Backoff" in error.report.batches[1].error
    assert error.report.records_applied == 75


@pytest.mark.asyncio
async def test_cancel_during_backoff_after_success_keeps_batch_applied(protocol, server, make_records):
    class CancellingSleeper:
        async def sleep(self, seconds):
            raise SyncCancelledError(f"Sync run was cancelled during a {seconds:.2f}s wait")

    protocol.sleeper = CancellingSleeper()
    server.submit_script = [httpx.Response(204, headers={"Backoff": "5"})]

    with pytest.raises(SyncCancelledError) as exc_info:
        await BatchCoordinator(protocol).sync_all(make_records(60))

    report = exc_info.value.report
    assert [b.status for b in report.batches] == ["success"]
    assert report.records_applied == 50
    assert len(server.submit_requests) == 1


@pytest.mark.asyncio
async def test_cancel_event_stops_before_next_batch(protocol, server, make_records):
    cancel_event = asyncio.Event()
    coordinator = BatchCoordinator(protocol, cancel_event=cancel_event)

    def cancel_after_first_submit(request):
        response = server.handler(request)
        if request.method != "GET":
            cancel_event.set()
        return response

    protocol.client._transport = httpx.MockTransport(cancel_after_first_submit)

    with pytest.raises(SyncCancelledError) as exc_info:
        await coordinator.sync_all(make_records(120))

    assert exc_info.value.batch_index == 1
    assert len(server.submit_requests) == 1
    assert [b.status for b in exc_info.value.report.batches] == ["success", "cancelled"]


@pytest.mark.asyncio
async def test_smaller_batch_size(protocol, server, make_records):
    await BatchCoordinator(protocol, batch_size=10).sync_all(make_records(25))
    assert [len(r.body) for r in server.submit_requests] == [10, 10, 5]

#
# End of test_batch_coordinator.py
#######################################################################################################################
