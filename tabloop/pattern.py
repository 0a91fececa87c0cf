"""The pattern document model.

A pattern is an ordered list of sections. Each section has a time signature and
a list of measures; each measure is a fixed-length row of 16th-note slots, and
each slot holds a chord id or ``None``. Sections also carry their melody notes.

All types here are frozen dataclasses built from tuples. Edits never mutate a
document in place: :mod:`tabloop.edits` returns a new one. Equality is therefore
structural, which is what the orchestrator uses to decide whether a change needs
a new timeline.

The persisted form (:class:`PatternRecord`) keeps the original storage layout:
the sections are a JSON string in ``notes``, the palette a JSON list in
``chord_palette``, and the melody a JSON object in ``melody`` keyed by section id.
"""

import dataclasses
import json
import typing
import uuid

import tabloop.errors


BEAT_UNITS = (4, 8)

DEFAULT_KEY_ROOT = "C"
DEFAULT_KEY_TYPE = "major"
KEY_TYPES = ("major", "minor")


def new_id () -> str:

	"""Return a fresh id for a section or measure."""

	return uuid.uuid4().hex[:12]


def slots_per_measure (beats: int, beat_unit: int) -> int:

	"""Return the number of 16th-note slots in one measure.

	A quarter-note beat holds four 16th notes, an eighth-note beat two.

	Example:
		```python
		slots_per_measure(4, 4)   # → 16
		slots_per_measure(6, 8)   # → 12
		```
	"""

	return beats * (2 if beat_unit == 8 else 4)


@dataclasses.dataclass(frozen=True)
class TimeSignature:

	"""
	Beats per measure over the beat unit (quarter or eighth note).
	"""

	beats: int = 4
	beat_unit: int = 4

	def __post_init__ (self) -> None:

		if self.beats <= 0:
			raise ValueError("Time signature needs at least one beat")

		if self.beat_unit not in BEAT_UNITS:
			raise ValueError(f"Beat unit must be one of {BEAT_UNITS}, got {self.beat_unit}")

	@property
	def subdivisions_per_beat (self) -> int:

		"""16th-note slots per beat."""

		return 2 if self.beat_unit == 8 else 4

	@property
	def slots_per_measure (self) -> int:

		"""16th-note slots per measure."""

		return slots_per_measure(self.beats, self.beat_unit)

	@classmethod
	def parse (cls, text: str) -> "TimeSignature":

		"""Parse ``"beats/unit"`` (e.g. ``"6/8"``).

		Raises:
			ValueError: If the text is not a valid time signature.
		"""

		beats, sep, unit = text.strip().partition("/")

		if not sep:
			raise ValueError(f"Invalid time signature: {text!r}")

		return cls(beats=int(beats), beat_unit=int(unit))

	def __str__ (self) -> str:

		return f"{self.beats}/{self.beat_unit}"


@dataclasses.dataclass(frozen=True)
class Measure:

	"""
	One measure of the chord grid.
	"""

	id: str
	slots: typing.Tuple[typing.Optional[str], ...]

	@classmethod
	def empty (cls, time_signature: TimeSignature, measure_id: typing.Optional[str] = None) -> "Measure":

		"""Create a measure with every slot empty."""

		return cls(id=measure_id or new_id(), slots=(None,) * time_signature.slots_per_measure)


@dataclasses.dataclass(frozen=True)
class MelodyNote:

	"""
	A melody note scoped to a section.

	Attributes:
		time: Offset from the start of the section, in slots.
		pitch: Scientific pitch name such as ``"C4"``.
		duration: Length in slots.
	"""

	time: int
	pitch: str
	duration: int = 1


@dataclasses.dataclass(frozen=True)
class Section:

	"""
	A run of measures sharing one time signature.
	"""

	id: str
	time_signature: TimeSignature = TimeSignature()
	measures: typing.Tuple[Measure, ...] = ()
	melody: typing.Tuple[MelodyNote, ...] = ()

	@property
	def slot_count (self) -> int:

		"""Total slots across all measures of this section."""

		return self.time_signature.slots_per_measure * len(self.measures)

	def measure (self, measure_id: str) -> typing.Optional[Measure]:

		"""Return the measure with the given id, if present."""

		for measure in self.measures:
			if measure.id == measure_id:
				return measure

		return None


@dataclasses.dataclass(frozen=True)
class PatternKey:

	"""
	The key a pattern is written in (display metadata only).
	"""

	root: str = DEFAULT_KEY_ROOT
	type: str = DEFAULT_KEY_TYPE


@dataclasses.dataclass(frozen=True)
class PatternRecord:

	"""
	A pattern as stored by the persistence layer.
	"""

	id: str
	name: str
	notes: str = "[]"
	key_root: str = DEFAULT_KEY_ROOT
	key_type: str = DEFAULT_KEY_TYPE
	chord_palette: str = "[]"
	melody: str = "{}"


@dataclasses.dataclass(frozen=True)
class PatternDocument:

	"""
	The in-memory pattern being edited and played.
	"""

	sections: typing.Tuple[Section, ...] = ()
	key: PatternKey = PatternKey()
	palette: typing.Tuple[str, ...] = ()

	def section (self, section_id: str) -> typing.Optional[Section]:

		"""Return the section with the given id, if present."""

		for section in self.sections:
			if section.id == section_id:
				return section

		return None

	def slot (self, section_id: str, measure_id: str, slot_index: int) -> typing.Optional[str]:

		"""Return the chord id at a grid coordinate (``None`` when empty or out of range)."""

		section = self.section(section_id)

		if section is None:
			return None

		measure = section.measure(measure_id)

		if measure is None or not 0 <= slot_index < len(measure.slots):
			return None

		return measure.slots[slot_index]

	def has_slot (self, section_id: str, measure_id: str, slot_index: int) -> bool:

		"""Return True if the coordinate addresses an existing slot."""

		section = self.section(section_id)

		if section is None:
			return False

		measure = section.measure(measure_id)

		return measure is not None and 0 <= slot_index < len(measure.slots)

	@classmethod
	def from_record (cls, record: PatternRecord) -> "PatternDocument":

		"""Decode a persisted pattern.

		Raises:
			tabloop.errors.ValidationError: If any of the JSON fields is malformed.
		"""

		sections = sections_from_json(record.notes)
		melody = _loads(record.melody, "melody") if record.melody else {}
		palette = _loads(record.chord_palette, "chord palette") if record.chord_palette else []

		if not isinstance(melody, dict) or not isinstance(palette, list):
			raise tabloop.errors.ValidationError("Pattern melody or palette has the wrong shape.")

		sections = tuple(
			dataclasses.replace(section, melody=_melody_from_data(melody.get(section.id, [])))
			for section in sections
		)

		return cls(
			sections = sections,
			key = PatternKey(root=record.key_root or DEFAULT_KEY_ROOT, type=record.key_type or DEFAULT_KEY_TYPE),
			palette = tuple(str(chord_id) for chord_id in palette)
		)

	def to_record_fields (self) -> typing.Dict[str, str]:

		"""Encode this document into the persisted pattern fields (everything but id and name)."""

		melody = {
			section.id: [_melody_note_to_data(note) for note in section.melody]
			for section in self.sections
			if section.melody
		}

		return {
			"notes": sections_to_json(self.sections),
			"key_root": self.key.root,
			"key_type": self.key.type,
			"chord_palette": json.dumps(list(self.palette)),
			"melody": json.dumps(melody),
		}


def new_document (id_factory: typing.Callable[[], str] = new_id) -> PatternDocument:

	"""Return the document a new pattern starts with: one empty 4/4 measure."""

	time_signature = TimeSignature()

	section = Section(
		id = id_factory(),
		time_signature = time_signature,
		measures = (Measure.empty(time_signature, id_factory()),)
	)

	return PatternDocument(sections=(section,))


def _loads (text: str, what: str) -> typing.Any:

	try:
		return json.loads(text)
	except (TypeError, ValueError) as exc:
		raise tabloop.errors.ValidationError(f"Invalid {what} JSON: {exc}") from exc


def _melody_note_to_data (note: MelodyNote) -> typing.Dict[str, typing.Any]:

	return {"time": note.time, "note": note.pitch, "duration": note.duration}


def _melody_from_data (data: typing.Any) -> typing.Tuple[MelodyNote, ...]:

	if not isinstance(data, list):
		raise tabloop.errors.ValidationError("Section melody must be a list.")

	try:
		return tuple(
			MelodyNote(time=int(item["time"]), pitch=str(item["note"]), duration=int(item.get("duration", 1)))
			for item in data
		)
	except (KeyError, TypeError, ValueError) as exc:
		raise tabloop.errors.ValidationError(f"Invalid melody note: {exc}") from exc


def _section_to_data (section: Section) -> typing.Dict[str, typing.Any]:

	return {
		"id": section.id,
		"time_signature": str(section.time_signature),
		"measures": [{"id": measure.id, "slots": list(measure.slots)} for measure in section.measures],
	}


def _section_from_data (data: typing.Any) -> Section:

	"""Decode one section, fitting every measure to the section's slot count."""

	try:
		time_signature = TimeSignature.parse(str(data.get("time_signature", "4/4")))
		slot_count = time_signature.slots_per_measure
		measures = []

		for item in data.get("measures", []):
			slots = [None if slot is None else str(slot) for slot in item.get("slots", [])]
			slots = (slots + [None] * slot_count)[:slot_count]
			measures.append(Measure(id=str(item.get("id") or new_id()), slots=tuple(slots)))

		return Section(
			id = str(data.get("id") or new_id()),
			time_signature = time_signature,
			measures = tuple(measures),
			melody = _melody_from_data(data.get("melody", []))
		)

	except (AttributeError, TypeError, ValueError) as exc:
		raise tabloop.errors.ValidationError(f"Invalid section: {exc}") from exc


def sections_to_json (sections: typing.Sequence[Section]) -> str:

	"""Encode sections (without melody) as stored in a pattern's ``notes`` field."""

	return json.dumps([_section_to_data(section) for section in sections])


def sections_from_json (text: str) -> typing.Tuple[Section, ...]:

	"""Decode a pattern's ``notes`` field.

	Raises:
		tabloop.errors.ValidationError: If the JSON is malformed or not a list of sections.
	"""

	data = _loads(text, "pattern")

	if not isinstance(data, list):
		raise tabloop.errors.ValidationError("Pattern JSON must be a list of sections.")

	return tuple(_section_from_data(item) for item in data)


def document_to_json (document: PatternDocument) -> str:

	"""Render the full document (sections with their melody) as indented JSON for the JSON view."""

	data = []

	for section in document.sections:
		item = _section_to_data(section)
		item["melody"] = [_melody_note_to_data(note) for note in section.melody]
		data.append(item)

	return json.dumps(data, indent=2)


def document_from_json (text: str, base: typing.Optional[PatternDocument] = None) -> PatternDocument:

	"""Parse JSON-view text back into a document, keeping key and palette from ``base``.

	Raises:
		tabloop.errors.ValidationError: If the text is not a valid section list.
	"""

	sections = sections_from_json(text)
	base = base or PatternDocument()

	return dataclasses.replace(base, sections=sections)
