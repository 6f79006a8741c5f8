"""Tests for the per-escrow keyed lock."""

from __future__ import annotations

import asyncio

import pytest

from verified_escrow.infrastructure.locks import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_serialized(self) -> None:
        locks = KeyedLock()
        order: list[str] = []

        async def work(name: str) -> None:
            async with locks.hold("esc-1"):
                order.append(f"{name}:start")
                await asyncio.sleep(0.01)
                order.append(f"{name}:end")

        await asyncio.gather(work("a"), work("b"))
        assert order in (
            ["a:start", "a:end", "b:start", "b:end"],
            ["b:start", "b:end", "a:start", "a:end"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_parallel(self) -> None:
        locks = KeyedLock()
        both_inside = asyncio.Event()
        inside = 0

        async def work(key: str) -> None:
            nonlocal inside
            async with locks.hold(key):
                inside += 1
                if inside == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1)

        await asyncio.gather(work("esc-1"), work("esc-2"))
        assert both_inside.is_set()

    @pytest.mark.asyncio
    async def test_released_locks_are_dropped(self) -> None:
        locks = KeyedLock()
        async with locks.hold("esc-1"):
            assert locks.is_locked("esc-1")
            assert len(locks) == 1
        assert not locks.is_locked("esc-1")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self) -> None:
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            async with locks.hold("esc-1"):
                raise RuntimeError("boom")
        assert len(locks) == 0
