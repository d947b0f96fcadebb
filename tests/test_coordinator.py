"""Tests for UploadCoordinator."""
from unittest.mock import AsyncMock

import pytest

from r2manager.errors import InvalidTransitionError
from r2manager.models import FailureKind, MiB, UploadConfig, UploadStatus
from r2manager.upload.coordinator import UploadCoordinator
from r2manager.upload.source import BytesSource


class Recorder:
    """Collects every event the coordinator emits."""

    def __init__(self, emitter):
        self.events = []
        for name in ("progress", "retry", "status", "terminal"):
            emitter.on(name, lambda event, name=name: self.events.append((name, event)))

    def of(self, name):
        return [event for kind, event in self.events if kind == name]

    def kinds(self):
        return [kind for kind, _ in self.events]


def _coordinator(transport, chunk_size=10, **kwargs) -> UploadCoordinator:
    config = UploadConfig(chunk_size=chunk_size, max_retries=3, retry_delay=0)
    return UploadCoordinator(transport, config, sleep=AsyncMock(), **kwargs)


class TestUploadCoordinator:
    @pytest.mark.asyncio
    async def test_multi_chunk_upload(self, transport):
        """25 MiB in 10 MiB chunks: 3 chunks, progress below 100 until verified."""
        coordinator = _coordinator(transport, chunk_size=10 * MiB)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(BytesSource("big.txt", b"a" * (25 * MiB)), "bucket", "docs")

        result = await coordinator.upload_file(task)

        assert result.success is True
        assert [c["size"] for c in transport.upload_calls] == [10 * MiB, 10 * MiB, 5 * MiB]
        assert [c["chunk_index"] for c in transport.upload_calls] == [0, 1, 2]
        assert all(c["total_chunks"] == 3 and c["file_name"] == "docs/big.txt" for c in transport.upload_calls)
        assert [r.index for r in result.chunk_results] == [0, 1, 2]

        percents = [e.percent for e in recorder.of("progress")]
        below = percents[:-1]
        assert len(set(below)) >= 3
        assert all(b > a for a, b in zip(below, below[1:]))
        assert max(below) < 100
        assert percents[-1] == 100

        kinds = recorder.kinds()
        verifying = [i for i, (k, e) in enumerate(recorder.events) if k == "status" and e.status == UploadStatus.VERIFYING][0]
        assert kinds.index("progress") < verifying
        assert percents.index(100) == len(percents) - 1
        assert [e.status for e in recorder.of("status")] == [
            UploadStatus.UPLOADING,
            UploadStatus.VERIFYING,
            UploadStatus.COMPLETE,
        ]
        terminal = recorder.of("terminal")
        assert len(terminal) == 1 and terminal[0].verified is True
        assert task.status == UploadStatus.COMPLETE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"", b"small file"])
    async def test_single_chunk_upload(self, transport, payload):
        coordinator = _coordinator(transport)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(BytesSource("a.txt", payload), "bucket")

        result = await coordinator.upload_file(task)

        assert result.success is True
        assert len(transport.upload_calls) == 1
        assert transport.upload_calls[0]["total_chunks"] == 1
        assert [e.percent for e in recorder.of("progress")] == [100]

    @pytest.mark.asyncio
    async def test_single_chunk_checksum_mismatch(self, transport):
        transport.etag_for = lambda index, data: '"0000"'
        coordinator = _coordinator(transport)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(BytesSource("a.txt", b"hello"), "bucket")

        result = await coordinator.upload_file(task)

        assert result.success is False
        assert result.failure == FailureKind.VERIFICATION
        assert result.error == "Verification failed: Checksum mismatch"
        assert task.status == UploadStatus.FAILED
        assert 100 not in [e.percent for e in recorder.of("progress")]
        assert recorder.of("terminal")[0].verified is False

    @pytest.mark.asyncio
    async def test_multi_chunk_missing_etag(self, transport):
        transport.etag_for = lambda index, data: "" if index == 1 else '"x"'
        coordinator = _coordinator(transport)
        task = coordinator.create_task(BytesSource("a.txt", b"a" * 25), "bucket")

        result = await coordinator.upload_file(task)

        assert result.failure == FailureKind.VERIFICATION
        assert result.error == "Verification failed: Chunk count mismatch"

    @pytest.mark.asyncio
    async def test_validation_rejects_before_network(self, transport):
        coordinator = _coordinator(transport)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(BytesSource("tool.exe", b"MZ", "application/x-msdownload"), "bucket")

        result = await coordinator.upload_file(task)

        assert result.failure == FailureKind.VALIDATION
        assert result.error.startswith("File type not allowed")
        assert transport.upload_calls == []
        assert task.status == UploadStatus.FAILED
        assert [e.status for e in recorder.of("status")] == [UploadStatus.FAILED]

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, transport):
        transport.chunk_failures[1] = 1
        coordinator = _coordinator(transport)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(BytesSource("a.txt", b"a" * 25), "bucket")

        result = await coordinator.upload_file(task)

        assert result.success is True
        retries = recorder.of("retry")
        assert len(retries) == 1
        assert (retries[0].attempt, retries[0].chunk_index) == (1, 1)

    @pytest.mark.asyncio
    async def test_exhausted_chunk_fails_task_and_resume_skips_done_chunks(self, transport):
        transport.chunk_failures[1] = 3
        coordinator = _coordinator(transport)
        task = coordinator.create_task(BytesSource("a.txt", b"a" * 25), "bucket")

        result = await coordinator.upload_file(task)

        assert result.failure == FailureKind.TRANSFER
        assert result.error.startswith("Upload failed: 2 chunks remaining. Last error: Failed to upload chunk 1 after 3 attempts")
        assert result.outstanding_chunks == (1, 2)
        assert task.completed_chunk_indices == frozenset({0})

        with pytest.raises(InvalidTransitionError):
            await coordinator.upload_file(task)

        transport.upload_calls.clear()
        resumed = task.resume()
        result = await coordinator.upload_file(resumed)

        assert result.success is True
        assert [c["chunk_index"] for c in transport.upload_calls] == [1, 2]
        assert [r.index for r in result.chunk_results] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_short_read_fails_task(self, transport):
        class Truncated(BytesSource):
            async def read(self, offset, length):
                return b""

        coordinator = _coordinator(transport)
        task = coordinator.create_task(Truncated("a.txt", b"a" * 25), "bucket")

        result = await coordinator.upload_file(task)

        assert result.failure == FailureKind.TRANSFER
        assert "Short read on chunk 0" in result.error
        assert transport.upload_calls == []

    @pytest.mark.asyncio
    async def test_upload_many_is_sequential(self, transport):
        coordinator = _coordinator(transport)
        tasks = [coordinator.create_task(BytesSource(f"{n}.txt", b"x" * 12), "bucket") for n in ("a", "b")]

        results = await coordinator.upload_many(tasks)

        assert [r.success for r in results] == [True, True]
        assert [c["file_name"] for c in transport.upload_calls] == ["a.txt", "a.txt", "b.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_resume_after_checksum_mismatch_resends_chunk(self, transport):
        transport.etag_for = lambda index, data: '"deadbeef"'
        coordinator = _coordinator(transport)
        task = coordinator.create_task(BytesSource("a.txt", b"hello"), "bucket")

        first = await coordinator.upload_file(task)
        transport.etag_for = None
        second = await coordinator.upload_file(task.resume())

        assert first.error == "Verification failed: Checksum mismatch"
        assert second.success is True
        assert [c["chunk_index"] for c in transport.upload_calls] == [0, 0]

    @pytest.mark.asyncio
    async def test_resume_after_missing_etag_resends_only_that_chunk(self, transport):
        transport.etag_for = lambda index, data: "" if index == 1 else '"x"'
        coordinator = _coordinator(transport)
        task = coordinator.create_task(BytesSource("a.txt", b"a" * 25), "bucket")

        first = await coordinator.upload_file(task)
        transport.etag_for = None
        transport.upload_calls.clear()
        second = await coordinator.upload_file(task.resume())

        assert first.failure == FailureKind.VERIFICATION
        assert second.success is True
        assert [c["chunk_index"] for c in transport.upload_calls] == [1]

    @pytest.mark.asyncio
    async def test_unexpected_source_error_becomes_failed_result(self, transport):
        class Broken(BytesSource):
            async def read(self, offset, length):
                raise ValueError("source closed")

        coordinator = _coordinator(transport)
        recorder = Recorder(coordinator.events)
        task = coordinator.create_task(Broken("a.txt", b"a" * 25), "bucket")

        result = await coordinator.upload_file(task)

        assert result.failure == FailureKind.TRANSFER
        assert result.error.endswith("Last error: source closed")
        assert task.status == UploadStatus.FAILED
        assert recorder.of("terminal")[0].status == UploadStatus.FAILED
