import logging
import typing

import tabloop.compiler
import tabloop.instruments
import tabloop.transport
from tabloop.chords import Chord, Tuning
from tabloop.pattern import PatternDocument


logger = logging.getLogger(__name__)


class AudioEngine:

	"""
	The playback handle shared by the orchestrator and the presentation layer.

	Constructed once at startup. Wraps a :class:`~tabloop.transport.Transport`
	and adds instrument lookup by name and compile-and-install in one call.

	Example:
		```python
		engine = AudioEngine(output_device_name="IAC Driver Bus 1")
		engine.initialize()
		engine.update_transport_schedule(document, chords, tunings)
		engine.toggle_playback()
		```
	"""

	def __init__ (
		self,
		output_device_name: typing.Optional[str] = None,
		initial_bpm: float = 120,
		instrument: str = "piano",
		transport: typing.Optional[tabloop.transport.Transport] = None
	) -> None:

		"""Create the engine. No MIDI port is opened until :meth:`initialize`."""

		self.transport = transport or tabloop.transport.Transport(
			output_device_name = output_device_name,
			initial_bpm = initial_bpm,
			instrument = tabloop.instruments.get_instrument(instrument)
		)

		self.initialized = False


	def initialize (self) -> None:

		"""Open the MIDI output. Safe to call more than once."""

		if self.initialized:
			return

		self.transport.open_output()
		self.initialized = True

		logger.info("Audio engine initialized")


	def set_instrument (self, name: str) -> None:

		"""Switch to ``"piano"`` or ``"guitar"``. Raises ``ValidationError`` for other names."""

		self.transport.set_instrument(tabloop.instruments.get_instrument(name))


	def set_bpm (self, bpm: float) -> None:

		self.transport.set_bpm(bpm)


	def update_transport_schedule (self, document: PatternDocument, chords: typing.Iterable[Chord], tunings: typing.Iterable[Tuning]) -> tabloop.compiler.Timeline:

		"""Compile the document against the libraries and install the result on the transport."""

		timeline = tabloop.compiler.compile_timeline(document, chords, tunings)
		self.transport.install(timeline)

		return timeline


	def toggle_playback (self) -> None:

		self.transport.toggle_playback()


	def stop_and_rewind (self) -> None:

		self.transport.stop_and_rewind()


	def on_beat (self, callback: typing.Callable[[int], typing.Any]) -> typing.Callable[[], None]:

		"""Register a beat listener; returns a function that removes it."""

		return self.transport.events.on("beat", callback)


	@property
	def state (self) -> tabloop.transport.TransportState:

		return self.transport.state


	async def shutdown (self) -> None:

		"""Stop playback and release the MIDI port."""

		await self.transport.close()
		self.initialized = False

		logger.info("Audio engine shut down")
