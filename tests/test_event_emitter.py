import asyncio

import pytest

import tabloop.event_emitter


def test_on_and_emit_sync () -> None:

	"""Registered sync callbacks are called on emit_sync."""

	emitter = tabloop.event_emitter.EventEmitter()
	received: list[int] = []

	emitter.on("beat", lambda v: received.append(v))
	emitter.emit_sync("beat", 4)

	assert received == [4]


def test_unsubscribe_function_removes_callback () -> None:

	emitter = tabloop.event_emitter.EventEmitter()
	received: list[int] = []

	unsubscribe = emitter.on("beat", received.append)
	unsubscribe()
	unsubscribe()
	emitter.emit_sync("beat", 1)

	assert received == []
	assert emitter.listener_count("beat") == 0


def test_off_only_removes_target_callback () -> None:

	"""off() leaves other callbacks for the same event intact."""

	emitter = tabloop.event_emitter.EventEmitter()
	a: list[int] = []
	b: list[int] = []

	def cb_a (v: int) -> None:
		a.append(v)

	def cb_b (v: int) -> None:
		b.append(v)

	emitter.on("beat", cb_a)
	emitter.on("beat", cb_b)
	emitter.off("beat", cb_a)
	emitter.emit_sync("beat", 7)

	assert a == []
	assert b == [7]


def test_off_raises_for_unregistered_callback () -> None:

	"""off() raises ValueError when the callback was never registered."""

	emitter = tabloop.event_emitter.EventEmitter()

	with pytest.raises(ValueError, match="beat"):
		emitter.off("beat", lambda: None)


def test_failing_listener_does_not_block_others () -> None:

	emitter = tabloop.event_emitter.EventEmitter()
	received: list[int] = []

	def broken (v: int) -> None:
		raise RuntimeError("listener bug")

	emitter.on("beat", broken)
	emitter.on("beat", received.append)
	emitter.emit_sync("beat", 3)

	assert received == [3]


def test_async_listener_needs_running_loop () -> None:

	emitter = tabloop.event_emitter.EventEmitter()

	async def listener (v: int) -> None:
		pass

	emitter.on("state", listener)

	with pytest.raises(ValueError, match="running event loop"):
		emitter.emit_sync("state", 1)


@pytest.mark.asyncio
async def test_emit_sync_schedules_async_listeners () -> None:

	emitter = tabloop.event_emitter.EventEmitter()
	received: list[int] = []

	async def listener (v: int) -> None:
		received.append(v)

	emitter.on("state", listener)
	emitter.emit_sync("state", 5)

	assert received == []
	await asyncio.sleep(0)
	assert received == [5]


@pytest.mark.asyncio
async def test_emit_async_awaits_listeners () -> None:

	emitter = tabloop.event_emitter.EventEmitter()
	received: list[str] = []

	async def slow (v: str) -> None:
		await asyncio.sleep(0.01)
		received.append(f"slow {v}")

	emitter.on("state", slow)
	emitter.on("state", lambda v: received.append(f"sync {v}"))

	await emitter.emit_async("state", "x")

	assert received == ["sync x", "slow x"]


def test_clear () -> None:

	emitter = tabloop.event_emitter.EventEmitter()
	emitter.on("beat", lambda v: None)
	emitter.clear()

	assert emitter.listener_count("beat") == 0
