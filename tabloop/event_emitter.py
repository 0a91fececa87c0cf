import asyncio
import inspect
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named events with sync and async listeners.

	Used by the transport for ``beat``/``state``/``chord`` notifications and by
	the orchestrator to publish state changes. A listener that raises is logged
	and skipped so one bad subscriber cannot stop the clock.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> typing.Callable[[], None]:

		"""
		Register a callback and return a function that unregisters it.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

		def _unsubscribe () -> None:
			if callback in self._listeners.get(event_name, []):
				self._listeners[event_name].remove(callback)

		return _unsubscribe

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)

	def clear (self) -> None:

		"""Remove every listener for every event."""

		self._listeners.clear()

	def listener_count (self, event_name: str) -> int:

		return len(self._listeners.get(event_name, []))


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event from synchronous code.

		Plain callbacks run immediately. Coroutine callbacks are scheduled as
		tasks on the running loop; without a running loop they are an error.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if inspect.iscoroutinefunction(callback):
				try:
					loop = asyncio.get_running_loop()
				except RuntimeError:
					raise ValueError(f"Async listener for {event_name!r} needs a running event loop") from None
				loop.create_task(self._guarded(event_name, callback(*args, **kwargs)))
				continue

			try:
				callback(*args, **kwargs)
			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")


	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event and await all async listeners.
		"""

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			if inspect.iscoroutinefunction(callback):
				tasks.append(self._guarded(event_name, callback(*args, **kwargs)))
				continue

			try:
				callback(*args, **kwargs)
			except Exception:
				logger.exception(f"Listener for {event_name!r} failed")

		if tasks:
			await asyncio.gather(*tasks)


	@staticmethod
	async def _guarded (event_name: str, awaitable: typing.Awaitable[typing.Any]) -> None:

		try:
			await awaitable
		except Exception:
			logger.exception(f"Async listener for {event_name!r} failed")
