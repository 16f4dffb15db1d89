"""Tests for src.core.dispatch — detached background sends."""

import asyncio
import logging

import pytest

from src.core.dispatch import BackgroundDispatcher


class TestBackgroundDispatcher:
    @pytest.mark.asyncio
    async def test_spawned_task_runs(self):
        dispatcher = BackgroundDispatcher()
        done = []

        async def work():
            done.append(True)

        dispatcher.spawn(work(), label="work")
        await dispatcher.drain()

        assert done == [True]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog):
        dispatcher = BackgroundDispatcher()

        async def boom():
            raise RuntimeError("provider down")

        with caplog.at_level(logging.ERROR, logger="src.core.dispatch"):
            dispatcher.spawn(boom(), label="thank-you email")
            await dispatcher.drain()

        assert "thank-you email" in caplog.text
        assert "provider down" in caplog.text

    @pytest.mark.asyncio
    async def test_tracks_pending_until_done(self):
        dispatcher = BackgroundDispatcher()
        gate = asyncio.Event()

        async def wait():
            await gate.wait()

        dispatcher.spawn(wait(), label="wait")
        assert dispatcher.pending == 1
        gate.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        dispatcher = BackgroundDispatcher()

        async def forever():
            await asyncio.sleep(3600)

        task = dispatcher.spawn(forever(), label="slow")
        await dispatcher.drain(timeout=0.01)

        assert task.cancelled()
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        await BackgroundDispatcher().drain()
