import asyncio
import typing

import pytest
import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import tabloop.audio_engine
import tabloop.orchestrator
import tabloop.osc
import tabloop.persistence
import tabloop.transport
from tabloop.machine import Audio
from tabloop.transport import TransportState


@pytest.fixture
async def orchestrator (patch_midi: None) -> tabloop.orchestrator.Orchestrator:

	"""A started orchestrator over in-memory persistence and a hand-clocked transport."""

	engine = tabloop.audio_engine.AudioEngine(transport=tabloop.transport.Transport(manual_clock=True))
	orchestrator = tabloop.orchestrator.Orchestrator(tabloop.persistence.InMemoryPersistence(), engine)
	await orchestrator.start()

	return orchestrator


async def _server_and_client (orchestrator: tabloop.orchestrator.Orchestrator, send_port: int = 0) -> typing.Tuple[tabloop.osc.OscServer, pythonosc.udp_client.SimpleUDPClient]:

	server = tabloop.osc.OscServer(orchestrator, receive_port=0, send_port=send_port)
	await server.start()

	port = server._transport.get_extra_info("sockname")[1]

	return server, pythonosc.udp_client.SimpleUDPClient("127.0.0.1", port)


@pytest.mark.asyncio
async def test_osc_bpm_handler (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	"""Sending /bpm should update the state and the transport tempo."""

	server, client = await _server_and_client(orchestrator)

	client.send_message("/bpm", 145)
	await asyncio.sleep(0.1)

	assert orchestrator.state.bpm == 145
	assert orchestrator.audio_engine.transport.current_bpm == 145

	await server.stop()


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [float("inf"), float("nan"), "fast"])
async def test_osc_bpm_ignores_unplayable_values (orchestrator: tabloop.orchestrator.Orchestrator, value: typing.Any) -> None:

	server, client = await _server_and_client(orchestrator)

	client.send_message("/bpm", value)
	await asyncio.sleep(0.1)

	assert orchestrator.state.bpm == 120
	assert orchestrator.audio_engine.transport.current_bpm == 120
	assert orchestrator.audio_engine.transport.seconds_per_pulse > 0

	await server.stop()


@pytest.mark.asyncio
async def test_osc_play_switches_audio_on (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	server, client = await _server_and_client(orchestrator)

	client.send_message("/play", [])
	await asyncio.sleep(0.1)

	assert orchestrator.state.audio is Audio.ON
	assert orchestrator.state.playing
	assert orchestrator.audio_engine.state is TransportState.PLAYING

	client.send_message("/stop", [])
	await asyncio.sleep(0.1)

	assert not orchestrator.state.playing
	assert orchestrator.audio_engine.state is TransportState.STOPPED

	await server.stop()


@pytest.mark.asyncio
async def test_osc_instrument_handler (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	server, client = await _server_and_client(orchestrator)

	client.send_message("/instrument", "guitar")
	await asyncio.sleep(0.1)
	assert orchestrator.state.instrument == "guitar"

	client.send_message("/instrument", "banjo")
	await asyncio.sleep(0.1)
	assert orchestrator.state.instrument == "guitar"
	assert "banjo" in orchestrator.state.error_message

	await server.stop()


@pytest.mark.asyncio
async def test_osc_beat_broadcasting (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	"""Every cursor move is sent as /beat."""

	received: typing.List[typing.Tuple[str, typing.Tuple[typing.Any, ...]]] = []

	def handle_beat (address: str, *args: typing.Any) -> None:
		received.append((address, args))

	dispatcher = pythonosc.dispatcher.Dispatcher()
	dispatcher.map("/beat", handle_beat)

	loop = asyncio.get_running_loop()
	recv_server = pythonosc.osc_server.AsyncIOOSCUDPServer(("127.0.0.1", 0), dispatcher, loop)
	recv_transport, _ = await recv_server.create_serve_endpoint()
	recv_port = recv_transport.get_extra_info("sockname")[1]

	server, _ = await _server_and_client(orchestrator, send_port=recv_port)
	engine = orchestrator.audio_engine

	engine.toggle_playback()
	engine.transport.advance(7)
	engine.stop_and_rewind()
	await asyncio.sleep(0.1)

	assert received == [("/beat", (0,)), ("/beat", (1,)), ("/beat", (-1,))]

	await server.stop()
	recv_transport.close()


@pytest.mark.asyncio
async def test_stop_unsubscribes_from_beats (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	server, _ = await _server_and_client(orchestrator)
	listeners = orchestrator.audio_engine.transport.events.listener_count("beat")

	await server.stop()

	assert orchestrator.audio_engine.transport.events.listener_count("beat") == listeners - 1
