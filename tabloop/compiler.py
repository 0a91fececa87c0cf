"""Schedule compiler: pattern document + chord/tuning libraries → timeline.

:func:`compile_timeline` is a pure, total function. It never raises for bad
data: a slot pointing at a chord that no longer exists is treated as empty, a
chord whose tuning is unknown sounds no strings, and a malformed fret token only
silences its own string. Playback keeps going no matter what the libraries hold.

All times are in transport pulses (24 per quarter note, so one 16th-note slot
is 6 pulses). The transport turns pulses into seconds with the live tempo, which
is why a BPM change never needs a recompile.

Chord events are gapless: each chord sounds until the next chord change, and the
last one sounds until the end of the loop.
"""

import dataclasses
import logging
import typing

import tabloop.chords
import tabloop.constants.pulses
from tabloop.chords import Chord, Tuning
from tabloop.pattern import PatternDocument


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ChordEvent:

	"""
	A chord change on the timeline.

	Attributes:
		start: Absolute start, in pulses.
		duration: Pulses until the next chord change (or the loop end).
		slot: Absolute slot index of the change.
		chord_id: The chord that was resolved.
		pitch_classes: Sorted, de-duplicated pitch classes (may be empty).
	"""

	start: int
	duration: int
	slot: int
	chord_id: str
	pitch_classes: typing.Tuple[int, ...]


@dataclasses.dataclass(frozen=True)
class MelodyEvent:

	"""
	A melody note on the timeline, with its explicit duration.
	"""

	start: int
	duration: int
	slot: int
	pitch: int


@dataclasses.dataclass(frozen=True)
class Timeline:

	"""
	The compiled, chronologically ordered events of a pattern.

	``total_slots`` is never zero: an empty timeline reports 1 so the beat cursor
	can always take a modulus.
	"""

	chord_events: typing.Tuple[ChordEvent, ...] = ()
	melody_events: typing.Tuple[MelodyEvent, ...] = ()
	total_pulses: int = 0
	total_slots: int = 1

	@property
	def is_empty (self) -> bool:

		"""True when there is nothing to play."""

		return not self.chord_events and not self.melody_events

	def to_dict (self) -> typing.Dict[str, typing.Any]:

		"""Return a JSON-safe representation."""

		return {
			"chord_events": [dataclasses.asdict(event) for event in self.chord_events],
			"melody_events": [dataclasses.asdict(event) for event in self.melody_events],
			"total_pulses": self.total_pulses,
			"total_slots": self.total_slots,
		}


EMPTY_TIMELINE = Timeline()


def _index_by_id (chords: typing.Iterable[Chord]) -> typing.Dict[str, Chord]:

	return {chord.id: chord for chord in chords}


def _open_pitch_classes_by_name (tunings: typing.Iterable[Tuning]) -> typing.Dict[str, typing.List[typing.Optional[int]]]:

	return {tuning.name: tuning.pitch_classes() for tuning in tunings}


def resolve_chord_pitch_classes (chord: Chord, open_pcs_by_tuning: typing.Mapping[str, typing.Sequence[typing.Optional[int]]]) -> typing.Tuple[int, ...]:

	"""Return the sorted set of pitch classes a chord sounds (empty if its tuning is unknown)."""

	open_pcs = open_pcs_by_tuning.get(chord.tuning)

	if open_pcs is None:
		return ()

	return tuple(sorted(set(tabloop.chords.fret_to_pitch_classes(chord.tab, open_pcs))))


def compile_timeline (document: PatternDocument, chords: typing.Iterable[Chord], tunings: typing.Iterable[Tuning]) -> Timeline:

	"""Compile a pattern document into a gapless, loopable timeline.

	Parameters:
		document: The pattern to compile. Key and palette are ignored.
		chords: The chord library; slots reference chords by id.
		tunings: The tuning library; chords reference tunings by name.

	Returns:
		A :class:`Timeline`. When nothing sounds at all the timeline is empty,
		with ``total_pulses == 0`` and ``total_slots == 1``.

	Example:
		```python
		timeline = compile_timeline(document, chords, tunings)
		for event in timeline.chord_events:
			print(event.start, event.duration, event.pitch_classes)
		```
	"""

	slot_pulses = tabloop.constants.pulses.PULSES_PER_SLOT
	chords_by_id = _index_by_id(chords)
	open_pcs_by_tuning = _open_pitch_classes_by_name(tunings)

	# (start, slot, chord_id, pitch_classes)
	starts: typing.List[typing.Tuple[int, int, str, typing.Tuple[int, ...]]] = []
	melody: typing.List[MelodyEvent] = []

	running_offset = 0
	running_slot = 0

	for section in document.sections:

		slots_per_measure = section.time_signature.slots_per_measure
		section_start = running_offset
		section_start_slot = running_slot

		for measure_index, measure in enumerate(section.measures):

			measure_slot = section_start_slot + measure_index * slots_per_measure

			for slot_index, chord_id in enumerate(measure.slots[:slots_per_measure]):

				if chord_id is None:
					continue

				chord = chords_by_id.get(chord_id)

				if chord is None:
					continue

				absolute_slot = measure_slot + slot_index
				pitch_classes = resolve_chord_pitch_classes(chord, open_pcs_by_tuning)
				starts.append((absolute_slot * slot_pulses, absolute_slot, chord.id, pitch_classes))

		section_slots = section.slot_count

		for note in section.melody:

			if not 0 <= note.time < section_slots or note.duration <= 0:
				continue

			pitch = tabloop.chords.note_name_to_midi(note.pitch)

			if pitch is None:
				continue

			melody.append(MelodyEvent(
				start = section_start + note.time * slot_pulses,
				duration = note.duration * slot_pulses,
				slot = section_start_slot + note.time,
				pitch = pitch
			))

		running_offset += section_slots * slot_pulses
		running_slot += section_slots

	if not starts and not melody:
		logger.debug("Compiled empty timeline")
		return EMPTY_TIMELINE

	total_pulses = running_offset
	starts.sort(key=lambda item: item[0])

	chord_events: typing.List[ChordEvent] = []

	for i, (start, slot, chord_id, pitch_classes) in enumerate(starts):

		end = starts[i + 1][0] if i + 1 < len(starts) else total_pulses

		chord_events.append(ChordEvent(
			start = start,
			duration = end - start,
			slot = slot,
			chord_id = chord_id,
			pitch_classes = pitch_classes
		))

	melody.sort(key=lambda event: (event.start, event.pitch))

	timeline = Timeline(
		chord_events = tuple(chord_events),
		melody_events = tuple(melody),
		total_pulses = total_pulses,
		total_slots = max(1, running_slot)
	)

	logger.debug(f"Compiled timeline: {len(chord_events)} chord events, {len(melody)} melody events, {total_pulses} pulses")

	return timeline
