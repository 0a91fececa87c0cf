import typing

import mido
import pytest

import tabloop.chords
import tabloop.pattern
import tabloop.persistence


class FakeMidiOut:

	"""MIDI output stub that records what it is sent."""

	def __init__ (self, name: str) -> None:

		self.name = name
		self.sent: typing.List[mido.Message] = []
		self.closed = False

	def send (self, message: mido.Message) -> None:

		"""Record outgoing MIDI messages."""

		self.sent.append(message)

	def close (self) -> None:

		self.closed = True

	def of_type (self, message_type: str) -> typing.List[mido.Message]:

		return [message for message in self.sent if message.type == message_type]


# Module-level reference so tests can reach the most recently opened output.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut(name)
	_current_fake_output = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def midi_out (patch_midi: None) -> typing.Callable[[], typing.Optional[FakeMidiOut]]:

	"""Return a getter for the fake output opened during the test."""

	return lambda: _current_fake_output


@pytest.fixture
def id_factory () -> typing.Callable[[], str]:

	"""Deterministic ids: id-1, id-2, ..."""

	counter = iter(range(1, 10_000))

	return lambda: f"id-{next(counter)}"


@pytest.fixture
def standard () -> tabloop.chords.Tuning:

	return tabloop.chords.Tuning(id="standard", name="Standard", notes="E A D G B e")


@pytest.fixture
def g_major (standard: tabloop.chords.Tuning) -> tabloop.chords.Chord:

	return tabloop.chords.Chord(id="g", name="G", tab="320003", tuning=standard.name)


@pytest.fixture
def store () -> tabloop.persistence.InMemoryPersistence:

	return tabloop.persistence.InMemoryPersistence()


def one_measure_document (slots: typing.Sequence[typing.Optional[str]], time_signature: str = "4/4") -> tabloop.pattern.PatternDocument:

	"""A single-section, single-measure document with the given slots."""

	ts = tabloop.pattern.TimeSignature.parse(time_signature)
	padded = tuple(slots) + (None,) * (ts.slots_per_measure - len(slots))
	measure = tabloop.pattern.Measure(id="m1", slots=padded)
	section = tabloop.pattern.Section(id="s1", time_signature=ts, measures=(measure,))

	return tabloop.pattern.PatternDocument(sections=(section,))


@pytest.fixture
def make_document () -> typing.Callable[..., tabloop.pattern.PatternDocument]:

	"""Build single-measure documents from a slot list."""

	return one_measure_document
