"""Pure structural edits over a :class:`~tabloop.pattern.PatternDocument`.

Every function takes a document and returns a new one; nothing is mutated and
nothing touches I/O. A reference to a section, measure or slot that does not
exist leaves the document unchanged, so the orchestrator can forward commands
without checking them first.

Slot moves overwrite: the destination's chord is replaced, not swapped.
Changing a section's time signature resets every measure in that section to
empty slots, because the slot count is derived from the time signature.
"""

import dataclasses
import typing

import tabloop.chords
import tabloop.pattern
from tabloop.pattern import MelodyNote, Measure, PatternDocument, Section, TimeSignature


IdFactory = typing.Callable[[], str]


@dataclasses.dataclass(frozen=True)
class SlotRef:

	"""
	A grid coordinate: section, measure and slot index.
	"""

	section_id: str
	measure_id: str
	slot_index: int


def _replace_section (document: PatternDocument, section_id: str, fn: typing.Callable[[Section], Section]) -> PatternDocument:

	"""Apply ``fn`` to one section, or return the document unchanged if it is missing."""

	if document.section(section_id) is None:
		return document

	sections = tuple(fn(section) if section.id == section_id else section for section in document.sections)

	return dataclasses.replace(document, sections=sections)


def add_section (document: PatternDocument, time_signature: typing.Optional[TimeSignature] = None, id_factory: IdFactory = tabloop.pattern.new_id) -> PatternDocument:

	"""Append a section with one empty measure (4/4 unless given)."""

	time_signature = time_signature or TimeSignature()

	section = Section(
		id = id_factory(),
		time_signature = time_signature,
		measures = (Measure.empty(time_signature, id_factory()),)
	)

	return dataclasses.replace(document, sections=document.sections + (section,))


def duplicate_section (document: PatternDocument, section_id: str, id_factory: IdFactory = tabloop.pattern.new_id) -> PatternDocument:

	"""Insert a copy of a section directly after it, with fresh section and measure ids."""

	for index, section in enumerate(document.sections):

		if section.id != section_id:
			continue

		copy = dataclasses.replace(
			section,
			id = id_factory(),
			measures = tuple(dataclasses.replace(measure, id=id_factory()) for measure in section.measures)
		)

		sections = document.sections[:index + 1] + (copy,) + document.sections[index + 1:]

		return dataclasses.replace(document, sections=sections)

	return document


def delete_section (document: PatternDocument, section_id: str) -> PatternDocument:

	"""Remove a section."""

	sections = tuple(section for section in document.sections if section.id != section_id)

	if len(sections) == len(document.sections):
		return document

	return dataclasses.replace(document, sections=sections)


def move_section (document: PatternDocument, section_id: str, new_index: int) -> PatternDocument:

	"""Move a section to a new position (clamped to the valid range)."""

	section = document.section(section_id)

	if section is None:
		return document

	others = [s for s in document.sections if s.id != section_id]
	new_index = max(0, min(new_index, len(others)))
	others.insert(new_index, section)

	return dataclasses.replace(document, sections=tuple(others))


def add_measure (document: PatternDocument, section_id: str, id_factory: IdFactory = tabloop.pattern.new_id) -> PatternDocument:

	"""Append an empty measure to a section."""

	def _add (section: Section) -> Section:
		return dataclasses.replace(section, measures=section.measures + (Measure.empty(section.time_signature, id_factory()),))

	return _replace_section(document, section_id, _add)


def delete_measure (document: PatternDocument, section_id: str, measure_id: str) -> PatternDocument:

	"""Remove a measure from a section."""

	def _delete (section: Section) -> Section:
		return dataclasses.replace(section, measures=tuple(m for m in section.measures if m.id != measure_id))

	return _replace_section(document, section_id, _delete)


def set_time_signature (document: PatternDocument, section_id: str, time_signature: TimeSignature) -> PatternDocument:

	"""Change a section's time signature and reset all its measures to empty slots."""

	def _retune (section: Section) -> Section:
		return dataclasses.replace(
			section,
			time_signature = time_signature,
			measures = tuple(Measure.empty(time_signature, measure.id) for measure in section.measures)
		)

	return _replace_section(document, section_id, _retune)


def set_slot (document: PatternDocument, ref: SlotRef, chord_id: typing.Optional[str]) -> PatternDocument:

	"""Write a chord id (or ``None`` to clear) into one slot."""

	if not document.has_slot(ref.section_id, ref.measure_id, ref.slot_index):
		return document

	def _write (section: Section) -> Section:

		measures = []

		for measure in section.measures:
			if measure.id == ref.measure_id:
				slots = list(measure.slots)
				slots[ref.slot_index] = chord_id
				measure = dataclasses.replace(measure, slots=tuple(slots))
			measures.append(measure)

		return dataclasses.replace(section, measures=tuple(measures))

	return _replace_section(document, ref.section_id, _write)


def move_slot (document: PatternDocument, source: SlotRef, target: SlotRef) -> PatternDocument:

	"""Move a chord from one slot to another, overwriting whatever the target held.

	Moving an empty slot, or onto itself, changes nothing.
	"""

	if source == target:
		return document

	if not document.has_slot(target.section_id, target.measure_id, target.slot_index):
		return document

	chord_id = document.slot(source.section_id, source.measure_id, source.slot_index)

	if chord_id is None:
		return document

	document = set_slot(document, source, None)

	return set_slot(document, target, chord_id)


def paste_slot (document: PatternDocument, target: SlotRef, clipboard: typing.Optional[str]) -> PatternDocument:

	"""Paste the clipboard's chord id into a slot (an empty clipboard changes nothing)."""

	if clipboard is None:
		return document

	return set_slot(document, target, clipboard)


def add_melody_note (document: PatternDocument, section_id: str, note: MelodyNote) -> PatternDocument:

	"""Add a melody note to a section, keeping the melody ordered by time."""

	def _add (section: Section) -> Section:
		melody = sorted(section.melody + (note,), key=lambda n: n.time)
		return dataclasses.replace(section, melody=tuple(melody))

	return _replace_section(document, section_id, _add)


def remove_melody_note (document: PatternDocument, section_id: str, index: int) -> PatternDocument:

	"""Remove the melody note at ``index`` from a section."""

	def _remove (section: Section) -> Section:

		if not 0 <= index < len(section.melody):
			return section

		return dataclasses.replace(section, melody=section.melody[:index] + section.melody[index + 1:])

	return _replace_section(document, section_id, _remove)


def set_key (document: PatternDocument, root: str, key_type: str) -> PatternDocument:

	"""Set the pattern key.

	Raises:
		ValueError: If the root is not a note name or the type is not major/minor.
	"""

	if tabloop.chords.note_name_to_pc(root) is None:
		raise ValueError(f"Unknown key root: {root!r}")

	if key_type not in tabloop.pattern.KEY_TYPES:
		raise ValueError(f"Key type must be one of {tabloop.pattern.KEY_TYPES}, got {key_type!r}")

	key = tabloop.pattern.PatternKey(root=tabloop.chords.normalize_note_name(root), type=key_type)

	return dataclasses.replace(document, key=key)


def toggle_palette_chord (document: PatternDocument, chord_id: str) -> PatternDocument:

	"""Add a chord id to the palette, or remove it if it is already there."""

	if chord_id in document.palette:
		palette = tuple(c for c in document.palette if c != chord_id)
	else:
		palette = document.palette + (chord_id,)

	return dataclasses.replace(document, palette=palette)
