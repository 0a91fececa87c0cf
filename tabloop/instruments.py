"""Playable instruments and how they voice a set of pitch classes.

A chord event only carries pitch classes. The active instrument decides the
octave: each pitch class is placed at the lowest MIDI note at or above the
instrument's ``base_note``, giving a close voicing within one octave.

The General MIDI program is sent whenever the instrument becomes active, so a
GM-compatible synth switches sound along with the voicing.
"""

import dataclasses
import typing

import tabloop.errors


@dataclasses.dataclass(frozen=True)
class Instrument:

	"""
	A named MIDI voice.

	Attributes:
		name: Identifier used by commands (``"piano"``, ``"guitar"``).
		program: General MIDI program number (0-127).
		channel: MIDI channel (0-15).
		base_note: Lowest MIDI note used when voicing chords.
	"""

	name: str
	program: int
	channel: int = 0
	base_note: int = 60

	def voice (self, pitch_classes: typing.Iterable[int]) -> typing.List[int]:

		"""Return MIDI notes for a set of pitch classes, ascending from ``base_note``.

		Example:
			```python
			PIANO.voice([0, 4, 7])    # → [60, 64, 67]
			GUITAR.voice([2, 7, 11])  # → [43, 47, 50]
			```
		"""

		return sorted(self.base_note + ((pc - self.base_note) % 12) for pc in set(pitch_classes))


PIANO = Instrument(name="piano", program=0, channel=0, base_note=60)
GUITAR = Instrument(name="guitar", program=25, channel=0, base_note=40)

INSTRUMENTS: typing.Dict[str, Instrument] = {
	PIANO.name: PIANO,
	GUITAR.name: GUITAR,
}


def get_instrument (name: str) -> Instrument:

	"""Look up an instrument by name.

	Raises:
		tabloop.errors.ValidationError: If the name is not a known instrument.
	"""

	try:
		return INSTRUMENTS[name]
	except KeyError:
		raise tabloop.errors.ValidationError(
			f"Unknown instrument: {name!r}. Expected one of {sorted(INSTRUMENTS)}."
		) from None
