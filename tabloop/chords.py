"""Chord shapes, tunings and pitch class utilities.

A chord in tabloop is a guitar shape: a 6-character tab with one fret token per
string (low string first) and the name of the tuning it is played in. A tuning
lists the six open-string note names. Together they resolve to a set of pitch
classes, which is all the schedule compiler needs.

Module-level constants:
- `NOTE_NAME_TO_PC`: Maps note names (e.g. `"C"`, `"F#"`, `"Bb"`) to pitch classes (0-11)
- `PC_TO_NOTE_NAME`: Maps pitch classes to note names
- `MUTED_TOKENS`: Tab characters that silence a string

Module-level helpers:
- `note_name_to_pc(name)`: Case-normalised lookup, ``None`` when unknown.
- `tuning_pitch_classes(notes)`: Open-string pitch classes for a tuning string.
- `fret_to_pitch_classes(tab, open_pcs)`: The fret-to-pitch function.
- `note_name_to_midi(name)`: Scientific pitch (``"C4"`` = 60) to a MIDI note number.
- `validate_tab(tab)` / `validate_tuning_notes(notes)`: Edit-boundary checks.
"""

import dataclasses
import re
import typing

import tabloop.errors


STRING_COUNT = 6

NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0,
	"C#": 1,
	"Db": 1,
	"D": 2,
	"D#": 3,
	"Eb": 3,
	"E": 4,
	"F": 5,
	"F#": 6,
	"Gb": 6,
	"G": 7,
	"G#": 8,
	"Ab": 8,
	"A": 9,
	"A#": 10,
	"Bb": 10,
	"B": 11,
}

PC_TO_NOTE_NAME: typing.List[str] = [
	"C",
	"C#",
	"D",
	"D#",
	"E",
	"F",
	"F#",
	"G",
	"G#",
	"A",
	"A#",
	"B",
]

MUTED_TOKENS = frozenset({"x", "X"})

_FRET_DIGITS = "0123456789"

_SCIENTIFIC_PITCH = re.compile(r"^([A-Ga-g])([#b]?)(-?\d)$")


@dataclasses.dataclass(frozen=True)
class Tuning:

	"""
	A named set of six open-string notes, low string to high string.
	"""

	id: str
	name: str
	notes: str

	def pitch_classes (self) -> typing.List[typing.Optional[int]]:

		"""Return the open-string pitch class for each of the six strings."""

		return tuning_pitch_classes(self.notes)


@dataclasses.dataclass(frozen=True)
class Chord:

	"""
	A saved chord shape: a 6-character tab played in a named tuning.
	"""

	id: str
	name: str
	tab: str
	tuning: str


def normalize_note_name (name: str) -> str:

	"""Uppercase the letter of a note name while keeping its accidental.

	``"e"`` becomes ``"E"`` and ``"bb"`` becomes ``"Bb"`` (B flat), so lowercase
	string labels and flats both resolve through :data:`NOTE_NAME_TO_PC`.
	"""

	name = name.strip()

	if not name:
		return name

	return name[0].upper() + name[1:]


def note_name_to_pc (name: str) -> typing.Optional[int]:

	"""Return the pitch class of a note name, or ``None`` if it is not recognised.

	Example:
		```python
		note_name_to_pc("e")    # → 4
		note_name_to_pc("Db")   # → 1
		note_name_to_pc("H")    # → None
		```
	"""

	return NOTE_NAME_TO_PC.get(normalize_note_name(name))


def tuning_pitch_classes (notes: str) -> typing.List[typing.Optional[int]]:

	"""Resolve a space-separated tuning string to six open-string pitch classes.

	Missing or unknown names come back as ``None`` so that only the affected
	strings fall silent.
	"""

	names = notes.split()
	pitch_classes: typing.List[typing.Optional[int]] = []

	for i in range(STRING_COUNT):
		pitch_classes.append(note_name_to_pc(names[i]) if i < len(names) else None)

	return pitch_classes


def fret_number (token: typing.Optional[str]) -> typing.Optional[int]:

	"""Return the fret for a tab token, or ``None`` when the string is muted or the token is invalid."""

	if token is None or token in MUTED_TOKENS:
		return None

	if len(token) != 1 or token not in _FRET_DIGITS:
		return None

	return int(token)


def fret_to_pitch_classes (tab: str, open_pitch_classes: typing.Sequence[typing.Optional[int]]) -> typing.Tuple[int, ...]:

	"""Map a tab over open-string pitch classes to the sounding pitch classes.

	Each of the six strings contributes ``(open + fret) % 12`` unless the tab
	token is a mute marker, missing, or not a fret digit, or the string's open
	note is unknown. Those strings are skipped; the chord as a whole is never
	rejected. The result is in string order and may repeat a pitch class.

	Example:
		```python
		open_pcs = tuning_pitch_classes("E A D G B e")
		fret_to_pitch_classes("320003", open_pcs)   # → (7, 11, 2, 7, 11, 7)
		fret_to_pitch_classes("x02210", open_pcs)   # → (9, 4, 9, 0, 4)
		```
	"""

	sounding: typing.List[int] = []

	for i in range(STRING_COUNT):

		token = tab[i] if i < len(tab) else None
		fret = fret_number(token)

		if fret is None:
			continue

		open_pc = open_pitch_classes[i] if i < len(open_pitch_classes) else None

		if open_pc is None:
			continue

		sounding.append((open_pc + fret) % 12)

	return tuple(sounding)


def note_name_to_midi (name: str) -> typing.Optional[int]:

	"""Convert a scientific pitch name to a MIDI note number (C4 = 60).

	Returns ``None`` for anything that does not parse or falls outside 0-127.
	"""

	match = _SCIENTIFIC_PITCH.match(name.strip())

	if match is None:
		return None

	letter, accidental, octave = match.groups()
	pc = note_name_to_pc(letter + accidental)

	if pc is None:
		return None

	midi = (int(octave) + 1) * 12 + pc

	if not 0 <= midi <= 127:
		return None

	return midi


def validate_tab (tab: str) -> str:

	"""Check that a tab has exactly one token per string.

	Raises:
		tabloop.errors.ValidationError: If the tab is not 6 characters long.
	"""

	if len(tab) != STRING_COUNT:
		raise tabloop.errors.ValidationError(
			f"A tab needs exactly {STRING_COUNT} characters (got {len(tab)}: {tab!r})."
		)

	return tab


def validate_tuning_notes (notes: str) -> str:

	"""Check that a tuning names six known notes.

	Raises:
		tabloop.errors.ValidationError: If the count is wrong or a name is unknown.
	"""

	names = notes.split()

	if len(names) != STRING_COUNT:
		raise tabloop.errors.ValidationError(
			f"A tuning needs exactly {STRING_COUNT} notes (got {len(names)})."
		)

	unknown = [name for name in names if note_name_to_pc(name) is None]

	if unknown:
		raise tabloop.errors.ValidationError(f"Unknown note names in tuning: {', '.join(unknown)}")

	return " ".join(names)
