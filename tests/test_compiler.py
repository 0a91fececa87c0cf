import json

import tabloop.compiler
import tabloop.pattern
from tabloop.chords import Chord, Tuning


def test_single_chord_fills_the_measure (make_document, g_major, standard) -> None:

	"""One chord at slot 0 sounds for the whole 4/4 measure (96 pulses)."""

	timeline = tabloop.compiler.compile_timeline(make_document(["g"]), [g_major], [standard])

	assert len(timeline.chord_events) == 1
	event = timeline.chord_events[0]
	assert event.start == 0
	assert event.duration == 96
	assert event.slot == 0
	assert event.pitch_classes == (2, 7, 11)
	assert timeline.total_pulses == 96
	assert timeline.total_slots == 16


def test_chord_changes_split_the_measure (make_document, g_major, standard) -> None:

	"""Chords at slots 0 and 8 each last half a measure."""

	c_major = Chord(id="c", name="C", tab="x32010", tuning="Standard")
	slots = ["g"] + [None] * 7 + ["c"]

	timeline = tabloop.compiler.compile_timeline(make_document(slots), [g_major, c_major], [standard])

	assert [(e.start, e.duration) for e in timeline.chord_events] == [(0, 48), (48, 48)]
	assert timeline.chord_events[1].pitch_classes == (0, 4, 7)


def test_durations_are_gapless (make_document, g_major, standard) -> None:

	c_major = Chord(id="c", name="C", tab="x32010", tuning="Standard")
	slots = [None, "g", None, "c", None, None, "g"]

	timeline = tabloop.compiler.compile_timeline(make_document(slots), [g_major, c_major], [standard])
	events = timeline.chord_events

	for current, following in zip(events, events[1:]):
		assert current.start + current.duration == following.start

	assert events[-1].start + events[-1].duration == timeline.total_pulses


def test_empty_document_gives_empty_timeline (make_document, g_major, standard) -> None:

	timeline = tabloop.compiler.compile_timeline(make_document([]), [g_major], [standard])

	assert timeline.is_empty
	assert timeline.total_pulses == 0
	assert timeline.total_slots == 1
	assert timeline == tabloop.compiler.EMPTY_TIMELINE


def test_missing_chord_is_treated_as_empty (make_document, standard) -> None:

	timeline = tabloop.compiler.compile_timeline(make_document(["deleted"]), [], [standard])

	assert timeline.is_empty


def test_unknown_tuning_still_cuts_previous_chord (make_document, g_major, standard) -> None:

	"""A chord in an unknown tuning produces a silent event rather than nothing."""

	odd = Chord(id="odd", name="Odd", tab="000000", tuning="Gone")
	slots = ["g", None, None, None, "odd"]

	timeline = tabloop.compiler.compile_timeline(make_document(slots), [g_major, odd], [standard])

	assert [(e.start, e.duration, e.pitch_classes) for e in timeline.chord_events] == [
		(0, 24, (2, 7, 11)),
		(24, 72, ()),
	]


def test_sections_run_back_to_back (g_major, standard) -> None:

	"""A 3/4 section followed by a 6/8 section: offsets accumulate per section."""

	first = tabloop.pattern.Section(
		id = "a",
		time_signature = tabloop.pattern.TimeSignature(3, 4),
		measures = (tabloop.pattern.Measure(id="a1", slots=("g",) + (None,) * 11),)
	)
	second = tabloop.pattern.Section(
		id = "b",
		time_signature = tabloop.pattern.TimeSignature(6, 8),
		measures = (
			tabloop.pattern.Measure(id="b1", slots=(None,) * 12),
			tabloop.pattern.Measure(id="b2", slots=(None,) * 2 + ("g",) + (None,) * 9),
		)
	)

	timeline = tabloop.compiler.compile_timeline(tabloop.pattern.PatternDocument(sections=(first, second)), [g_major], [standard])

	assert timeline.total_slots == 36
	assert timeline.total_pulses == 36 * 6
	assert [(e.start, e.slot) for e in timeline.chord_events] == [(0, 0), ((12 + 12 + 2) * 6, 26)]
	assert timeline.chord_events[-1].duration == (36 - 26) * 6


def test_melody_events_are_placed_within_their_section (make_document, standard) -> None:

	"""Melody-only documents still produce a timeline; bad notes are dropped."""

	document = make_document([])
	section = document.sections[0]
	melody = (
		tabloop.pattern.MelodyNote(time=4, pitch="E4", duration=2),
		tabloop.pattern.MelodyNote(time=16, pitch="C4"),
		tabloop.pattern.MelodyNote(time=0, pitch="nope"),
		tabloop.pattern.MelodyNote(time=1, pitch="C4", duration=0),
	)
	document = tabloop.pattern.PatternDocument(sections=(tabloop.pattern.Section(
		id = section.id,
		time_signature = section.time_signature,
		measures = section.measures,
		melody = melody
	),))

	timeline = tabloop.compiler.compile_timeline(document, [], [standard])

	assert timeline.chord_events == ()
	assert [(e.start, e.duration, e.pitch) for e in timeline.melody_events] == [(24, 12, 64)]
	assert timeline.total_pulses == 96


def test_key_and_palette_do_not_affect_compilation (make_document, g_major, standard) -> None:

	document = make_document(["g"])
	decorated = tabloop.pattern.PatternDocument(
		sections = document.sections,
		key = tabloop.pattern.PatternKey("E", "minor"),
		palette = ("g",)
	)

	assert tabloop.compiler.compile_timeline(document, [g_major], [standard]) == tabloop.compiler.compile_timeline(decorated, [g_major], [standard])


def test_compilation_is_deterministic (make_document, g_major, standard) -> None:

	c_major = Chord(id="c", name="C", tab="x32010", tuning="Standard")
	drop_d = Tuning(id="drop-d", name="Drop D", notes="D A D G B e")
	d_chord = Chord(id="d", name="D", tab="000232", tuning="Drop D")
	document = make_document(["g", None, "c", "d", None, "g"])

	first = tabloop.compiler.compile_timeline(document, [g_major, c_major, d_chord], [standard, drop_d])
	second = tabloop.compiler.compile_timeline(document, [d_chord, c_major, g_major], [drop_d, standard])

	assert first == second
	assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())


def test_lowercase_tuning_names_resolve (make_document) -> None:

	tuning = Tuning(id="t", name="Lower", notes="e a d g b e")
	chord = Chord(id="e", name="E", tab="022100", tuning="Lower")

	timeline = tabloop.compiler.compile_timeline(make_document(["e"]), [chord], [tuning])

	assert timeline.chord_events[0].pitch_classes == (4, 8, 11)
