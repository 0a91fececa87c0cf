import pytest

import tabloop.audio_engine
import tabloop.errors
import tabloop.instruments
import tabloop.transport
from tabloop.transport import TransportState


@pytest.fixture
def engine () -> tabloop.audio_engine.AudioEngine:

	return tabloop.audio_engine.AudioEngine(transport=tabloop.transport.Transport(manual_clock=True))


def test_update_transport_schedule_compiles_and_installs (engine, make_document, g_major, standard) -> None:

	timeline = engine.update_transport_schedule(make_document(["g"]), [g_major], [standard])

	assert engine.transport.timeline is timeline
	assert timeline.chord_events[0].duration == 96


def test_unknown_instrument_is_a_validation_error (engine) -> None:

	with pytest.raises(tabloop.errors.ValidationError, match="banjo"):
		engine.set_instrument("banjo")

	engine.set_instrument("guitar")
	assert engine.transport.instrument is tabloop.instruments.GUITAR


def test_playback_controls_and_beats (engine) -> None:

	beats: list[int] = []
	unsubscribe = engine.on_beat(beats.append)

	engine.toggle_playback()
	assert engine.state is TransportState.PLAYING

	engine.transport.advance(1)
	engine.stop_and_rewind()
	assert beats == [0, -1]

	unsubscribe()
	engine.toggle_playback()
	engine.toggle_playback()
	assert beats == [0, -1]


@pytest.mark.asyncio
async def test_initialize_opens_midi_and_shutdown_closes (midi_out) -> None:

	"""Initialization opens the output once; shutdown releases it."""

	engine = tabloop.audio_engine.AudioEngine(transport=tabloop.transport.Transport(manual_clock=True))

	engine.initialize()
	out = midi_out()
	engine.initialize()

	assert out is midi_out()
	assert out.name == "Dummy MIDI"
	assert engine.initialized

	await engine.shutdown()

	assert out.closed
	assert not engine.initialized
