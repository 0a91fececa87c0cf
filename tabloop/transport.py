import asyncio
import dataclasses
import enum
import heapq
import logging
import math
import time
import typing

import mido

import tabloop.compiler
import tabloop.constants.pulses
import tabloop.constants.velocity
import tabloop.event_emitter
import tabloop.instruments
import tabloop.midi_utils


logger = logging.getLogger(__name__)


class TransportState (enum.Enum):

	"""Playback state of the transport."""

	STOPPED = "stopped"
	PLAYING = "playing"
	PAUSED = "paused"


@dataclasses.dataclass (order=True)
class NoteOff:

	"""
	A pending note-off at an absolute pulse count.
	"""

	pulse: int
	channel: int = dataclasses.field(compare=False)
	note: int = dataclasses.field(compare=False)


@dataclasses.dataclass
class BeatCursor:

	"""
	Cancellable periodic handle that fires once per 16th-note slot.

	Each installed timeline gets its own cursor. Installing a new timeline
	cancels the old cursor first, so a stale cursor can never tick against the
	new slot count.
	"""

	total_slots: int
	interval_pulses: int = tabloop.constants.pulses.PULSES_PER_SLOT
	cancelled: bool = False

	def cancel (self) -> None:

		self.cancelled = True

	def due (self, position: int) -> bool:

		"""True when the cursor should fire at this loop position."""

		return not self.cancelled and position % self.interval_pulses == 0

	def beat_at (self, position: int) -> int:

		"""Return the slot index playing at ``position`` (pulses into the loop)."""

		return (position // self.interval_pulses) % max(1, self.total_slots)


TimelineEvent = typing.Union[tabloop.compiler.ChordEvent, tabloop.compiler.MelodyEvent]


class Transport:

	"""
	The real-time clock that plays a compiled timeline in a loop.

	The `Transport` owns the playback position, dispatches chord and melody
	events to a MIDI port as the clock reaches them, and emits a ``beat``
	event with the current slot index every 16th note.

	Events emitted through :attr:`events`:

	- ``beat`` (slot index, or ``-1`` after stop-and-rewind)
	- ``state`` (:class:`TransportState`)
	- ``chord`` (:class:`~tabloop.compiler.ChordEvent` as it is dispatched)
	"""

	def __init__ (
		self,
		output_device_name: typing.Optional[str] = None,
		initial_bpm: float = 120,
		instrument: tabloop.instruments.Instrument = tabloop.instruments.PIANO,
		spin_wait: bool = True,
		manual_clock: bool = False
	) -> None:

		"""Create a stopped transport with an empty timeline.

		Parameters:
			output_device_name: MIDI output to open in :meth:`open_output`. When
				omitted, the first available device is used.
			initial_bpm: Tempo in BPM.
			instrument: The instrument used for the next dispatched events.
			spin_wait: When True (default), busy-wait the final sub-millisecond of
				each pulse interval for tighter timing. Set False to use pure
				``asyncio.sleep()`` (lower CPU, higher jitter).
			manual_clock: When True no clock task is started; the caller advances
				time with :meth:`advance`. Used by tests and offline rendering.
		"""

		self.output_device_name = output_device_name
		self.pulses_per_beat = tabloop.constants.pulses.MIDI_QUARTER_NOTE
		self.midi_out: typing.Any = None

		self.instrument = instrument
		self.events = tabloop.event_emitter.EventEmitter()

		self.state = TransportState.STOPPED
		self.timeline = tabloop.compiler.EMPTY_TIMELINE
		self.loop_pulses = tabloop.constants.pulses.DEFAULT_LOOP_PULSES
		self.beat_cursor = BeatCursor(total_slots=self.timeline.total_slots)
		self._events_by_position: typing.Dict[int, typing.List[TimelineEvent]] = {}

		# Position within the loop and an ever-increasing pulse count (for note-offs).
		self.position = 0
		self.pulse_count = 0
		self.note_off_queue: typing.List[NoteOff] = []
		self.active_notes: typing.Set[typing.Tuple[int, int]] = set()

		self.task: typing.Optional[asyncio.Task] = None
		self._clock_generation = 0
		self._manual_clock = manual_clock
		self._spin_wait = spin_wait
		# Sleep to within this many seconds of the target, then spin.
		self._spin_threshold: float = 0.001

		self.current_bpm: float = 0
		self.seconds_per_pulse = 0.0
		self.set_bpm(initial_bpm)


	def open_output (self) -> None:

		"""Open the MIDI output port and select the current instrument's program."""

		if self.midi_out is not None:
			return

		device_name, midi_out = tabloop.midi_utils.select_output_device(self.output_device_name)

		if device_name:
			self.output_device_name = device_name
			self.midi_out = midi_out
			self._send(mido.Message('program_change', channel=self.instrument.channel, program=self.instrument.program))


	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo. Takes effect from the next pulse; the timeline is untouched.
		"""

		if not math.isfinite(bpm) or bpm <= 0:
			raise ValueError(f"BPM must be a positive finite number, got {bpm!r}")

		self.current_bpm = bpm
		self.seconds_per_pulse = 60.0 / self.current_bpm / self.pulses_per_beat

		logger.info(f"BPM set to {self.current_bpm:.2f}")


	def set_instrument (self, instrument: tabloop.instruments.Instrument) -> None:

		"""
		Switch instrument for events dispatched from now on.

		Notes already sounding keep their pitch and are released as scheduled.
		"""

		self.instrument = instrument
		self._send(mido.Message('program_change', channel=instrument.channel, program=instrument.program))

		logger.info(f"Instrument set to {instrument.name}")


	def current_beat (self) -> int:

		"""Return the slot index at the current position."""

		return self.beat_cursor.beat_at(self.position)


	def install (self, timeline: tabloop.compiler.Timeline) -> None:

		"""Atomically replace the playing timeline.

		Stops the clock, cancels the old beat cursor and every pending event,
		installs the new events and loop length, creates a new beat cursor for
		the new slot count and rewinds to 0. A playing transport resumes; a
		paused or stopped one reports the rewound cursor as a ``beat``.
		"""

		was_playing = self.state is TransportState.PLAYING

		self._halt_clock()
		self.beat_cursor.cancel()
		self._silence()

		events_by_position: typing.Dict[int, typing.List[TimelineEvent]] = {}

		for event in timeline.chord_events:
			events_by_position.setdefault(event.start, []).append(event)

		for melody_event in timeline.melody_events:
			events_by_position.setdefault(melody_event.start, []).append(melody_event)

		self.timeline = timeline
		self._events_by_position = events_by_position
		self.loop_pulses = timeline.total_pulses or tabloop.constants.pulses.DEFAULT_LOOP_PULSES
		self.beat_cursor = BeatCursor(total_slots=timeline.total_slots)
		self.position = 0

		logger.debug(f"Installed timeline: loop {self.loop_pulses} pulses, {timeline.total_slots} slots")

		if was_playing:
			self._start_clock()
		elif self.state is TransportState.PAUSED:
			self.events.emit_sync("beat", self.current_beat())
		else:
			self.events.emit_sync("beat", -1)


	def toggle_playback (self) -> None:

		"""Play from the current position, or pause and report the current slot."""

		if self.state is TransportState.PLAYING:

			self._halt_clock()
			self._silence()
			self.state = TransportState.PAUSED

			beat = self.current_beat()
			logger.info(f"Transport paused at slot {beat}")

			self.events.emit_sync("beat", beat)
			self.events.emit_sync("state", self.state)
			return

		self.state = TransportState.PLAYING
		self._start_clock()

		logger.info(f"Transport playing from pulse {self.position}")

		self.events.emit_sync("state", self.state)


	def stop_and_rewind (self) -> None:

		"""Stop, rewind to the start of the loop and clear the beat cursor (-1)."""

		self._halt_clock()
		self._silence()
		self.position = 0
		self.state = TransportState.STOPPED

		logger.info("Transport stopped")

		self.events.emit_sync("beat", -1)
		self.events.emit_sync("state", self.state)


	def advance (self, pulses: int = 1) -> None:

		"""Advance the clock by hand (``manual_clock`` mode only processes while playing)."""

		for _ in range(pulses):
			if self.state is not TransportState.PLAYING:
				break
			self._advance_pulse()


	async def close (self) -> None:

		"""Stop playback, silence everything and close the MIDI port."""

		task = self.task
		self._halt_clock()
		self._silence()
		self.state = TransportState.STOPPED

		if task is not None:
			try:
				await task
			except asyncio.CancelledError:
				pass

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

		logger.info("Transport closed")


	def _start_clock (self) -> None:

		"""Start a clock task for the current generation (no task in manual mode)."""

		self._clock_generation += 1

		if self._manual_clock:
			return

		self.task = asyncio.get_running_loop().create_task(self._run_loop(self._clock_generation))


	def _halt_clock (self) -> None:

		"""Stop clock advancement; a running loop notices via its generation number."""

		self._clock_generation += 1

		if self.task is not None and not self.task.done() and self.task is not asyncio.current_task():
			self.task.cancel()

		self.task = None


	def _advance_pulse (self) -> None:

		"""Release due notes, dispatch events at this position, tick the beat cursor, advance."""

		position = self.position

		self._release_notes(self.pulse_count)

		for event in self._events_by_position.get(position, ()):
			self._dispatch(event)

		if self.beat_cursor.due(position):
			self.events.emit_sync("beat", self.beat_cursor.beat_at(position))

		self.pulse_count += 1
		self.position = (position + 1) % self.loop_pulses


	def _dispatch (self, event: TimelineEvent) -> None:

		"""Start the notes of one timeline event with the instrument active right now."""

		channel = self.instrument.channel

		if isinstance(event, tabloop.compiler.ChordEvent):
			notes = self.instrument.voice(event.pitch_classes)
			velocity = tabloop.constants.velocity.DEFAULT_CHORD_VELOCITY
		else:
			notes = [event.pitch]
			velocity = tabloop.constants.velocity.DEFAULT_MELODY_VELOCITY

		for note in notes:
			self._send(mido.Message('note_on', channel=channel, note=note, velocity=velocity))
			self.active_notes.add((channel, note))
			heapq.heappush(self.note_off_queue, NoteOff(pulse=self.pulse_count + event.duration, channel=channel, note=note))

		if isinstance(event, tabloop.compiler.ChordEvent):
			self.events.emit_sync("chord", event)


	def _release_notes (self, pulse: int) -> None:

		while self.note_off_queue and self.note_off_queue[0].pulse <= pulse:

			off = heapq.heappop(self.note_off_queue)
			self._send(mido.Message('note_off', channel=off.channel, note=off.note, velocity=0))
			self.active_notes.discard((off.channel, off.note))


	def _silence (self) -> None:

		"""Drop pending note-offs and release every sounding note now."""

		self.note_off_queue = []

		for channel, note in sorted(self.active_notes):
			self._send(mido.Message('note_off', channel=channel, note=note, velocity=0))

		self.active_notes = set()


	def _send (self, message: mido.Message) -> None:

		"""Send a MIDI message if an output is open."""

		if self.midi_out is None:
			return

		try:
			self.midi_out.send(message)
		except Exception:
			logger.exception("MIDI send failed (device may be disconnected)")


	async def _run_loop (self, generation: int) -> None:

		"""Wall-clock playback loop; exits as soon as its generation is superseded."""

		next_pulse_time = time.perf_counter()

		try:

			while generation == self._clock_generation:

				while time.perf_counter() >= next_pulse_time and generation == self._clock_generation:
					self._advance_pulse()
					next_pulse_time += self.seconds_per_pulse

				sleep_time = next_pulse_time - time.perf_counter()

				if sleep_time <= 0:
					continue

				if self._spin_wait and sleep_time > self._spin_threshold:
					await asyncio.sleep(sleep_time - self._spin_threshold)
					while time.perf_counter() < next_pulse_time:
						pass
				else:
					await asyncio.sleep(sleep_time)

		except asyncio.CancelledError:
			pass
