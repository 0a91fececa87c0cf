import json
import typing

import pytest
import websockets.asyncio.client

import tabloop.audio_engine
import tabloop.errors
import tabloop.machine
import tabloop.orchestrator
import tabloop.persistence
import tabloop.transport
import tabloop.web_ui
from tabloop.edits import SlotRef


def test_parse_command_accepts_wire_and_class_names () -> None:

	assert tabloop.web_ui.parse_command('{"type": "ADD_SECTION", "time_signature": "3/4"}') == tabloop.machine.AddSection("3/4")
	assert tabloop.web_ui.parse_command('{"type": "ToggleView"}') == tabloop.machine.ToggleView()
	assert tabloop.web_ui.parse_command('{"type": "SET_BPM", "bpm": 90}') == tabloop.machine.SetBpm(90)


def test_parse_command_builds_slot_refs () -> None:

	text = json.dumps({
		"type": "MOVE_SLOT",
		"source": {"section_id": "s1", "measure_id": "m1", "slot_index": 0},
		"target": {"section_id": "s1", "measure_id": "m1", "slot_index": "3"},
	})

	command = tabloop.web_ui.parse_command(text)

	assert command == tabloop.machine.MoveSlot(SlotRef("s1", "m1", 0), SlotRef("s1", "m1", 3))


def test_parse_command_ignores_unknown_fields () -> None:

	command = tabloop.web_ui.parse_command('{"type": "DISMISS_ERROR", "extra": 1}')

	assert command == tabloop.machine.DismissError()


def test_parse_command_coerces_numeric_fields () -> None:

	assert tabloop.web_ui.parse_command('{"type": "SET_BPM", "bpm": "120"}') == tabloop.machine.SetBpm(120.0)
	assert tabloop.web_ui.parse_command('{"type": "MOVE_SECTION", "section_id": "s1", "new_index": "1"}') == tabloop.machine.MoveSection("s1", 1)
	assert tabloop.web_ui.parse_command('{"type": "MOVE_SECTION", "section_id": "s1", "new_index": 2.0}') == tabloop.machine.MoveSection("s1", 2)


@pytest.mark.parametrize("text, message", [
	("not json", "not valid JSON"),
	('["ADD_SECTION"]', "string 'type'"),
	('{"type": "LAUNCH_ROCKETS"}', "Unknown command"),
	('{"type": "LIBRARIES_LOADED"}', "Unknown command"),
	('{"type": "BEAT", "index": 3}', "Unknown command"),
	('{"type": "SELECT_SLOT", "section_id": "s1"}', "Bad fields for SelectSlot"),
	('{"type": "COPY_SLOT", "slot": {"section_id": "s1"}}', "Bad slot reference"),
	('{"type": "COPY_SLOT", "slot": "s1"}', "Bad slot reference"),
	('{"type": "COPY_SLOT", "slot": {"section_id": "s1", "measure_id": "m1", "slot_index": 1.5}}', "Bad slot reference"),
	('{"type": "SET_BPM", "bpm": Infinity}', "Non-finite number Infinity"),
	('{"type": "SET_BPM", "bpm": NaN}', "Non-finite number NaN"),
	('{"type": "SET_BPM", "bpm": 1e999}', "'bpm' of SetBpm must be float"),
	('{"type": "SET_BPM", "bpm": "fast"}', "'bpm' of SetBpm must be float"),
	('{"type": "SET_BPM", "bpm": true}', "'bpm' of SetBpm must be float"),
	('{"type": "MOVE_SECTION", "section_id": "s1", "new_index": 1.5}', "'new_index' of MoveSection must be int"),
	('{"type": "MOVE_SECTION", "section_id": 7, "new_index": 1}', "'section_id' of MoveSection must be str"),
])
def test_parse_command_rejects (text: str, message: str) -> None:

	with pytest.raises(tabloop.errors.ValidationError, match=message):
		tabloop.web_ui.parse_command(text)


async def _receive_until (ws: websockets.asyncio.client.ClientConnection, predicate: typing.Callable[[typing.Dict[str, typing.Any]], bool]) -> typing.Dict[str, typing.Any]:

	"""Read messages until one matches, skipping periodic state broadcasts."""

	while True:
		message = json.loads(await ws.recv())
		if predicate(message):
			return message


@pytest.fixture
async def orchestrator () -> tabloop.orchestrator.Orchestrator:

	engine = tabloop.audio_engine.AudioEngine(transport=tabloop.transport.Transport(manual_clock=True))
	orchestrator = tabloop.orchestrator.Orchestrator(tabloop.persistence.InMemoryPersistence(), engine)
	await orchestrator.start()

	return orchestrator


@pytest.mark.asyncio
async def test_websocket_session (orchestrator: tabloop.orchestrator.Orchestrator) -> None:

	"""A client gets a snapshot on connect, can send commands, and hears about bad ones."""

	web_ui = tabloop.web_ui.WebUI(orchestrator, http_port=0, ws_port=0)
	await web_ui.start()

	port = web_ui._ws_server.sockets[0].getsockname()[1]

	async with websockets.asyncio.client.connect(f"ws://127.0.0.1:{port}") as ws:

		first = json.loads(await ws.recv())
		assert first["type"] == "state"
		assert first["state"]["view_mode"] == "visual"
		assert [t["name"] for t in first["state"]["saved_tunings"]][0] == "Standard"

		await ws.send(json.dumps({"type": "TOGGLE_VIEW"}))
		update = await _receive_until(ws, lambda m: m["type"] == "state" and m["state"]["view_mode"] == "json")
		assert update["state"]["pattern_json"].startswith("[")

		await ws.send("{}")
		error = await _receive_until(ws, lambda m: m["type"] == "error")
		assert error["message"] == "Message needs a string 'type'."

		await ws.send(json.dumps({"type": "SET_BPM", "bpm": "fast"}))
		error = await _receive_until(ws, lambda m: m["type"] == "error")
		assert error["message"] == "Field 'bpm' of SetBpm must be float."

		await ws.send('{"type": "SET_BPM", "bpm": Infinity}')
		error = await _receive_until(ws, lambda m: m["type"] == "error")
		assert error["message"] == "Non-finite number Infinity is not allowed."
		assert orchestrator.state.bpm == 120

		orchestrator.audio_engine.transport.toggle_playback()
		orchestrator.audio_engine.transport.advance(1)
		beat = await _receive_until(ws, lambda m: m["type"] == "beat")
		assert beat == {"type": "beat", "index": 0}

	await web_ui.stop()

	assert orchestrator.events.listener_count("state") == 0
