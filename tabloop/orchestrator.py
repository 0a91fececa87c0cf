import asyncio
import logging
import typing

import tabloop.audio_engine
import tabloop.errors
import tabloop.event_emitter
import tabloop.machine
import tabloop.persistence


logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred."


class Orchestrator:

	"""
	Runs the state machine against real services.

	:meth:`send` applies :func:`~tabloop.machine.transition` synchronously,
	publishes the new state to subscribers and then executes the effects:
	audio effects call the :class:`~tabloop.audio_engine.AudioEngine` directly,
	persistence effects run as asyncio tasks whose outcome comes back in as a
	command. Beat notifications from the engine come back in as ``Beat``.

	Example:
		```python
		orchestrator = Orchestrator(InMemoryPersistence(), AudioEngine())
		await orchestrator.start()
		orchestrator.send(tabloop.machine.CreateChord(name="G", tab="320003", tuning="Standard"))
		await orchestrator.wait_idle()
		```
	"""

	def __init__ (
		self,
		persistence: tabloop.persistence.PersistenceApi,
		audio_engine: tabloop.audio_engine.AudioEngine,
		state: typing.Optional[tabloop.machine.AppState] = None
	) -> None:

		self.persistence = persistence
		self.audio_engine = audio_engine
		self.state = state or tabloop.machine.initial_state()
		self.events = tabloop.event_emitter.EventEmitter()

		self._tasks: typing.Set[asyncio.Task] = set()
		self._unsubscribe_beat = audio_engine.on_beat(self._on_beat)


	async def start (self) -> None:

		"""Send ``Start`` and wait until the initial library load has been applied."""

		self.send(tabloop.machine.Start())
		await self.wait_idle()

		logger.info(f"Loaded {len(self.state.patterns)} patterns, {len(self.state.chords)} chords, {len(self.state.tunings)} tunings")


	def send (self, command: typing.Any) -> tabloop.machine.AppState:

		"""Apply a command, publish the new state and execute the resulting effects."""

		previous = self.state
		state, effects = tabloop.machine.transition(previous, command)

		if state is previous and not effects:
			return state

		self.state = state

		if not isinstance(command, tabloop.machine.Beat):
			logger.debug(f"{type(command).__name__}: save={state.save_status.kind.value} mode={state.mode.value} effects={[type(e).__name__ for e in effects]}")

		if state is not previous:
			self.events.emit_sync("state", state)

		for effect in effects:
			self._execute(effect)

		return self.state


	def subscribe (self, callback: typing.Callable[[tabloop.machine.AppState], typing.Any]) -> typing.Callable[[], None]:

		"""Call ``callback(state)`` after every state change; returns an unsubscribe function."""

		return self.events.on("state", callback)


	async def wait_idle (self) -> None:

		"""Wait for every in-flight persistence task, including the ones they trigger."""

		while self._tasks:
			await asyncio.gather(*list(self._tasks), return_exceptions=True)


	async def close (self) -> None:

		"""Stop listening to the engine and wait for outstanding persistence calls."""

		self._unsubscribe_beat()
		await self.wait_idle()


	def _on_beat (self, index: int) -> None:

		self.send(tabloop.machine.Beat(index=index))


	def _execute (self, effect: tabloop.machine.Effect) -> None:

		engine = self.audio_engine

		if isinstance(effect, tabloop.machine.UpdateSchedule):
			engine.update_transport_schedule(effect.document, effect.chords, effect.tunings)

		elif isinstance(effect, tabloop.machine.FetchLibraries):
			self._spawn(self._fetch_libraries())

		elif isinstance(effect, tabloop.machine.Persist):
			self._spawn(self._persist(effect))

		elif isinstance(effect, tabloop.machine.InitializeAudio):
			engine.initialize()

		elif isinstance(effect, tabloop.machine.TogglePlaybackEffect):
			engine.toggle_playback()

		elif isinstance(effect, tabloop.machine.StopAndRewindEffect):
			engine.stop_and_rewind()

		elif isinstance(effect, tabloop.machine.SetInstrumentEffect):
			engine.set_instrument(effect.name)

		elif isinstance(effect, tabloop.machine.SetBpmEffect):
			engine.set_bpm(effect.bpm)

		else:
			raise TypeError(f"Unknown effect: {effect!r}")


	def _spawn (self, coroutine: typing.Coroutine[typing.Any, typing.Any, None]) -> None:

		task = asyncio.get_running_loop().create_task(coroutine)
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)


	async def _fetch_libraries (self) -> None:

		try:
			patterns, chords, tunings = await asyncio.gather(
				self.persistence.list_patterns(),
				self.persistence.list_chords(),
				self.persistence.list_tunings()
			)

		except tabloop.errors.TabloopError as e:
			logger.error(f"Loading libraries failed: {e}")
			self.send(tabloop.machine.LoadFailed(message=str(e)))
			return

		except Exception:
			logger.exception("Loading libraries failed")
			self.send(tabloop.machine.LoadFailed(message=UNEXPECTED_ERROR_MESSAGE))
			return

		self.send(tabloop.machine.LibrariesLoaded(patterns=tuple(patterns), chords=tuple(chords), tunings=tuple(tunings)))


	async def _persist (self, effect: tabloop.machine.Persist) -> None:

		operation = getattr(self.persistence, effect.operation)

		try:
			result = await operation(**effect.payload)

		except tabloop.errors.TabloopError as e:
			logger.error(f"{effect.operation} failed: {e}")
			self.send(tabloop.machine.MutationFailed(message=str(e)))
			return

		except Exception:
			logger.exception(f"{effect.operation} failed")
			self.send(tabloop.machine.MutationFailed(message=UNEXPECTED_ERROR_MESSAGE))
			return

		logger.info(f"{effect.operation} succeeded")
		self.send(tabloop.machine.MutationSucceeded(result=result))
