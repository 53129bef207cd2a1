"""
Tests for the engine adapter.

QC: Verify that the adapter
1. Initializes the engine exactly once, even under concurrent load() calls
2. Never retries a failed load
3. Uses the fixed scratch names and argument list
4. Scopes progress subscriptions to a single transcode call
5. Normalizes every engine failure to TranscodeError
"""

import asyncio

import pytest

from fakes import FakeEngine
from webm2mp4.execution.adapter import EngineAdapter
from webm2mp4.execution.errors import EngineLoadError, TranscodeError
from webm2mp4.execution.formats import INPUT_NAME, OUTPUT_NAME, TRANSCODE_ARGS


def run(coro):
    return asyncio.run(coro)


class TestLoad:

    def test_concurrent_loads_initialize_once(self):
        engine = FakeEngine(load_delay=0.01)
        adapter = EngineAdapter(engine)

        async def scenario():
            assert not adapter.ready()
            await asyncio.gather(adapter.load(), adapter.load(), adapter.load())
            await adapter.load()

        run(scenario())

        assert engine.initialize_calls == 1
        assert adapter.ready()

    def test_failed_load_is_not_retried(self):
        engine = FakeEngine(fail_load=EngineLoadError("ffmpeg is not installed", resource="ffmpeg"))
        adapter = EngineAdapter(engine)

        async def scenario():
            with pytest.raises(EngineLoadError):
                await adapter.load()
            with pytest.raises(EngineLoadError):
                await adapter.load()

        run(scenario())

        assert engine.initialize_calls == 1
        assert not adapter.ready()

    def test_unexpected_load_failure_becomes_engine_load_error(self):
        adapter = EngineAdapter(FakeEngine(fail_load=RuntimeError("wasm instantiate failed")))

        async def scenario():
            with pytest.raises(EngineLoadError) as exc_info:
                await adapter.load()
            return exc_info.value

        error = run(scenario())
        assert "wasm instantiate failed" in str(error)


class TestTranscode:

    def test_requires_load(self):
        adapter = EngineAdapter(FakeEngine())

        async def scenario():
            with pytest.raises(TranscodeError):
                await adapter.transcode(b"webm")

        run(scenario())

    def test_uses_fixed_names_and_arguments(self):
        engine = FakeEngine(output=b"mp4-bytes")
        adapter = EngineAdapter(engine)

        async def scenario():
            await adapter.load()
            return await adapter.transcode(b"webm-bytes")

        output = run(scenario())

        assert output == b"mp4-bytes"
        assert engine.written == {INPUT_NAME: b"webm-bytes"}
        assert engine.execute_calls == [TRANSCODE_ARGS]
        assert TRANSCODE_ARGS == ["-i", "input.webm", "output.mp4"]
        # Scratch files are removed afterwards
        assert INPUT_NAME not in engine.files
        assert OUTPUT_NAME not in engine.files

    def test_progress_is_forwarded_then_unsubscribed(self):
        engine = FakeEngine(progress=[0.0, 0.25, 1.0])
        adapter = EngineAdapter(engine)
        received = []

        async def scenario():
            await adapter.load()
            await adapter.transcode(b"webm", received.append)

        run(scenario())

        assert received == [0.0, 0.25, 1.0]
        assert engine.channel.subscriber_count == 0

        # A late publish reaches nobody
        engine.channel.publish(0.5)
        assert received == [0.0, 0.25, 1.0]

    def test_engine_failure_is_transcode_error(self):
        engine = FakeEngine(progress=[0.3], fail_execute=TranscodeError("Invalid data found", exit_code=1))
        adapter = EngineAdapter(engine)
        received = []

        async def scenario():
            await adapter.load()
            with pytest.raises(TranscodeError) as exc_info:
                await adapter.transcode(b"webm", received.append)
            return exc_info.value

        error = run(scenario())

        assert error.exit_code == 1
        assert received == [0.3]
        assert engine.channel.subscriber_count == 0
        assert engine.files == {}
        assert not adapter.busy

    def test_unexpected_failure_is_wrapped(self):
        adapter = EngineAdapter(FakeEngine(fail_execute=RuntimeError("worker crashed")))

        async def scenario():
            await adapter.load()
            with pytest.raises(TranscodeError) as exc_info:
                await adapter.transcode(b"webm")
            return exc_info.value

        error = run(scenario())
        assert "worker crashed" in str(error)

    def test_concurrent_transcode_is_rejected(self):
        gate = asyncio.Event()
        engine = FakeEngine(gate=gate)
        adapter = EngineAdapter(engine)

        async def scenario():
            await adapter.load()
            first = asyncio.create_task(adapter.transcode(b"one"))
            await asyncio.sleep(0)
            assert adapter.busy

            with pytest.raises(TranscodeError):
                await adapter.transcode(b"two")

            gate.set()
            return await first

        assert run(scenario()) == engine.output
        assert len(engine.execute_calls) == 1


class TestClose:

    def test_close_releases_engine(self):
        engine = FakeEngine()
        adapter = EngineAdapter(engine)

        async def scenario():
            await adapter.load()
            await adapter.close()

        run(scenario())

        assert engine.closed
        assert not adapter.ready()
