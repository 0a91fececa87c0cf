"""Read-only projections of :class:`~tabloop.machine.AppState`.

The presentation layer reads state only through these functions, so the shape
of the state can change without touching every view. :func:`snapshot` bundles
all of them into one JSON-safe dictionary for the websocket bridge.
"""

import dataclasses
import typing

import tabloop.pattern
from tabloop.chords import Chord, Tuning
from tabloop.machine import AppState, Audio, Mode
from tabloop.pattern import PatternDocument, PatternRecord


def is_audio_on (state: AppState) -> bool:

	return state.audio is Audio.ON


def is_saving (state: AppState) -> bool:

	"""True while any mutation or reload is in flight."""

	return not state.save_status.is_idle


def is_playing (state: AppState) -> bool:

	return state.playing


def document (state: AppState) -> PatternDocument:

	return state.document


def pattern_name (state: AppState) -> str:

	return state.pattern_name


def saved_patterns (state: AppState) -> typing.Tuple[PatternRecord, ...]:

	return state.patterns


def saved_chords (state: AppState) -> typing.Tuple[Chord, ...]:

	return state.chords


def saved_tunings (state: AppState) -> typing.Tuple[Tuning, ...]:

	return state.tunings


def editing_chord_id (state: AppState) -> typing.Optional[str]:

	return state.editing_chord_id


def editing_tuning_id (state: AppState) -> typing.Optional[str]:

	return state.editing_tuning_id


def error_message (state: AppState) -> typing.Optional[str]:

	return state.error_message


def selected_pattern_id (state: AppState) -> typing.Optional[str]:

	return state.selected_pattern_id


def is_show_dialog (state: AppState) -> bool:

	return state.mode is Mode.SHOWING_NEW_PATTERN_DIALOG


def new_pattern_name (state: AppState) -> str:

	return state.new_pattern_name


def view_mode (state: AppState) -> str:

	"""``"json"`` or ``"visual"``."""

	return state.view_mode.value


def active_slot (state: AppState) -> typing.Optional[typing.Dict[str, typing.Any]]:

	"""The slot waiting for a chord choice, if any."""

	if state.mode is not Mode.SELECTING_CHORD_FOR_SLOT or state.active_slot is None:
		return None

	return dataclasses.asdict(state.active_slot)


def active_beat (state: AppState) -> int:

	"""Slot index under the playback cursor (-1 when stopped)."""

	return state.active_beat


def palette_chords (state: AppState) -> typing.List[Chord]:

	"""The palette's chords in palette order, skipping ids no longer in the library."""

	by_id = {chord.id: chord for chord in state.chords}

	return [by_id[chord_id] for chord_id in state.document.palette if chord_id in by_id]


def is_slot_filled (state: AppState, section_id: str, measure_id: str, slot_index: int) -> bool:

	return state.document.slot(section_id, measure_id, slot_index) is not None


def pattern_json (state: AppState) -> str:

	"""The document as shown in the JSON view."""

	return tabloop.pattern.document_to_json(state.document)


def _document_data (doc: PatternDocument) -> typing.Dict[str, typing.Any]:

	return {
		"sections": [
			{
				"id": section.id,
				"time_signature": str(section.time_signature),
				"measures": [{"id": measure.id, "slots": list(measure.slots)} for measure in section.measures],
				"melody": [dataclasses.asdict(note) for note in section.melody],
			}
			for section in doc.sections
		],
		"key": {"root": doc.key.root, "type": doc.key.type},
		"palette": list(doc.palette),
	}


def snapshot (state: AppState) -> typing.Dict[str, typing.Any]:

	"""Every projection in one JSON-safe dictionary."""

	return {
		"is_audio_on": is_audio_on(state),
		"is_saving": is_saving(state),
		"is_playing": is_playing(state),
		"document": _document_data(document(state)),
		"pattern_name": pattern_name(state),
		"saved_patterns": [dataclasses.asdict(record) for record in saved_patterns(state)],
		"saved_chords": [dataclasses.asdict(chord) for chord in saved_chords(state)],
		"saved_tunings": [dataclasses.asdict(tuning) for tuning in saved_tunings(state)],
		"editing_chord_id": editing_chord_id(state),
		"editing_tuning_id": editing_tuning_id(state),
		"error_message": error_message(state),
		"selected_pattern_id": selected_pattern_id(state),
		"is_show_dialog": is_show_dialog(state),
		"new_pattern_name": new_pattern_name(state),
		"view_mode": view_mode(state),
		"active_slot": active_slot(state),
		"active_beat": active_beat(state),
		"palette_chords": [dataclasses.asdict(chord) for chord in palette_chords(state)],
		"pattern_json": pattern_json(state),
		"instrument": state.instrument,
		"bpm": state.bpm,
	}
