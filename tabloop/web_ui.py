import asyncio
import dataclasses
import http.server
import json
import logging
import math
import os
import re
import socketserver
import threading
import typing

import websockets
import websockets.asyncio.server
import websockets.exceptions

import tabloop.errors
import tabloop.machine
import tabloop.selectors
from tabloop.edits import SlotRef

if typing.TYPE_CHECKING:
	from tabloop.orchestrator import Orchestrator


logger = logging.getLogger(__name__)

# Commands only the orchestrator itself may send.
INTERNAL_COMMANDS = frozenset({
	tabloop.machine.Start,
	tabloop.machine.LibrariesLoaded,
	tabloop.machine.LoadFailed,
	tabloop.machine.MutationSucceeded,
	tabloop.machine.MutationFailed,
	tabloop.machine.Beat,
})


def _command_class (name: str) -> type:

	"""Find a command by class name (``AddSection``) or wire name (``ADD_SECTION``)."""

	available = tabloop.machine.commands()

	if name not in available and re.fullmatch(r"[A-Z0-9_]+", name):
		name = "".join(part.capitalize() for part in name.split("_"))

	command_type = available.get(name)

	if command_type is None or command_type in INTERNAL_COMMANDS:
		raise tabloop.errors.ValidationError(f"Unknown command: {name!r}")

	return command_type


def _reject_constant (name: str) -> typing.NoReturn:

	raise tabloop.errors.ValidationError(f"Non-finite number {name} is not allowed.")


def _slot_ref (field_name: str, value: typing.Any) -> SlotRef:

	try:
		section_id = value["section_id"]
		measure_id = value["measure_id"]
		slot_index = value["slot_index"]
	except (KeyError, TypeError):
		raise tabloop.errors.ValidationError(f"Bad slot reference in {field_name!r}.") from None

	if not isinstance(section_id, str) or not isinstance(measure_id, str) or isinstance(slot_index, (bool, float)):
		raise tabloop.errors.ValidationError(f"Bad slot reference in {field_name!r}.")

	try:
		return SlotRef(section_id=section_id, measure_id=measure_id, slot_index=int(slot_index))
	except (TypeError, ValueError):
		raise tabloop.errors.ValidationError(f"Bad slot reference in {field_name!r}.") from None


def _coerce (command_type: type, field: dataclasses.Field, value: typing.Any) -> typing.Any:

	"""Convert a decoded JSON value to the type the command field declares.

	Numeric strings are accepted for int and float fields. Booleans never count
	as numbers, and float fields must be finite.
	"""

	if field.type is SlotRef:
		return _slot_ref(field.name, value)

	expected = getattr(field.type, "__name__", str(field.type))
	error = tabloop.errors.ValidationError(f"Field {field.name!r} of {command_type.__name__} must be {expected}.")

	if isinstance(value, bool):
		raise error

	if field.type is int:
		if isinstance(value, float) and not value.is_integer():
			raise error
		try:
			return int(value)
		except (TypeError, ValueError, OverflowError):
			raise error from None

	if field.type is float:
		try:
			number = float(value)
		except (TypeError, ValueError):
			raise error from None
		if not math.isfinite(number):
			raise error
		return number

	if field.type is str and not isinstance(value, str):
		raise error

	return value


def parse_command (text: str) -> typing.Any:

	"""Decode ``{"type": "COMMAND_NAME", ...fields}`` into a command object.

	Raises:
		tabloop.errors.ValidationError: If the message is not a known command
			with the fields it needs, or a field has the wrong type.
	"""

	try:
		data = json.loads(text, parse_constant=_reject_constant)
	except json.JSONDecodeError as e:
		raise tabloop.errors.ValidationError(f"Message is not valid JSON: {e}") from None

	if not isinstance(data, dict) or not isinstance(data.get("type"), str):
		raise tabloop.errors.ValidationError("Message needs a string 'type'.")

	command_type = _command_class(data["type"])
	kwargs: typing.Dict[str, typing.Any] = {}

	for field in dataclasses.fields(command_type):

		if field.name in data:
			kwargs[field.name] = _coerce(command_type, field, data[field.name])

	try:
		return command_type(**kwargs)
	except TypeError as e:
		raise tabloop.errors.ValidationError(f"Bad fields for {command_type.__name__}: {e}") from None


class WebUI:

	"""
	Background Web UI Server.

	Serves the static frontend over HTTP and bridges the orchestrator over
	WebSockets: clients send commands as JSON, and receive a state snapshot
	whenever the state changes (at most 10 per second) plus a ``beat`` message
	for every cursor move.
	"""

	def __init__ (self, orchestrator: "Orchestrator", http_port: int = 8080, ws_port: int = 8765) -> None:

		self.orchestrator = orchestrator
		self.http_port = http_port
		self.ws_port = ws_port
		self._http_thread: typing.Optional[threading.Thread] = None
		self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
		self._broadcast_task: typing.Optional[asyncio.Task] = None
		self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()
		self._dirty = True
		self._unsubscribers: typing.List[typing.Callable[[], None]] = []

	async def start (self) -> None:

		self._start_http_server()

		self._unsubscribers.append(self.orchestrator.subscribe(self._on_state))
		self._unsubscribers.append(self.orchestrator.audio_engine.on_beat(self._on_beat))

		try:
			self._ws_server = await websockets.asyncio.server.serve(self._handle_client, "0.0.0.0", self.ws_port)
			self._broadcast_task = asyncio.create_task(self._broadcast_loop())
		except OSError as e:
			logger.error(f"WebSocket server error: {e}")

	def _start_http_server (self) -> None:

		if self._http_thread and self._http_thread.is_alive():
			return

		web_dir = os.path.join(os.path.dirname(__file__), "assets", "web")

		class Handler (http.server.SimpleHTTPRequestHandler):
			def __init__ (self, *args: typing.Any, **kwargs: typing.Any) -> None:
				super().__init__(*args, directory=web_dir, **kwargs)
			def log_message (self, format: str, *args: typing.Any) -> None:
				pass

		def run_server () -> None:
			socketserver.TCPServer.allow_reuse_address = True
			try:
				with socketserver.TCPServer(("", self.http_port), Handler) as httpd:
					httpd.serve_forever()
			except OSError as e:
				logger.error(f"HTTP Server error: {e}")

		self._http_thread = threading.Thread(target=run_server, daemon=True)
		self._http_thread.start()
		logger.info(f"Web UI available at http://localhost:{self.http_port}")

	def _on_state (self, state: tabloop.machine.AppState) -> None:

		self._dirty = True

	def _on_beat (self, index: int) -> None:

		if self._clients:
			websockets.broadcast(self._clients, json.dumps({"type": "beat", "index": index}))

	def _snapshot_message (self) -> str:

		return json.dumps({"type": "state", "state": tabloop.selectors.snapshot(self.orchestrator.state)})

	async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

		self._clients.add(websocket)
		try:
			await websocket.send(self._snapshot_message())
			async for message in websocket:
				await self._handle_message(websocket, message)
		except websockets.exceptions.ConnectionClosed:
			pass
		finally:
			self._clients.discard(websocket)

	async def _handle_message (self, websocket: websockets.asyncio.server.ServerConnection, message: typing.Union[str, bytes]) -> None:

		try:
			text = message.decode() if isinstance(message, bytes) else message
			command = parse_command(text)
		except UnicodeDecodeError:
			logger.warning("Rejected web command: not UTF-8")
			await websocket.send(json.dumps({"type": "error", "message": "Message is not valid UTF-8."}))
			return
		except tabloop.errors.ValidationError as e:
			logger.warning(f"Rejected web command: {e}")
			await websocket.send(json.dumps({"type": "error", "message": str(e)}))
			return

		self.orchestrator.send(command)

	async def _broadcast_loop (self) -> None:

		while True:
			await asyncio.sleep(0.1)

			if not self._clients or not self._dirty:
				continue

			self._dirty = False

			try:
				websockets.broadcast(self._clients, self._snapshot_message())
			except Exception:
				logger.exception("Error broadcasting UI state")

	async def stop (self) -> None:

		for unsubscribe in self._unsubscribers:
			unsubscribe()
		self._unsubscribers = []

		if self._broadcast_task:
			self._broadcast_task.cancel()
			self._broadcast_task = None
		if self._ws_server:
			self._ws_server.close()
			await self._ws_server.wait_closed()
			self._ws_server = None
