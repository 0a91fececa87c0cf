"""OSC control surface for playback.

The server listens on a UDP port (default 9000) for control messages and sends
the beat cursor to a target host/port (default 127.0.0.1:9001), so a hardware
controller or another program can drive and follow playback.

Receive Handlers
────────────────
- ``/play``: Toggle play/pause (switches audio on first if needed)
- ``/stop``: Stop and rewind
- ``/bpm <number>``: Set tempo
- ``/instrument <name>``: ``piano`` or ``guitar``

Send Events
───────────
- ``/beat <int>``: Slot index under the cursor, ``-1`` after a stop
"""

import asyncio
import logging
import math
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import tabloop.machine
import tabloop.selectors

if typing.TYPE_CHECKING:
	from tabloop.orchestrator import Orchestrator


logger = logging.getLogger(__name__)


class OscServer:

	"""Async OSC server/client for bi-directional communication."""

	def __init__ (
		self,
		orchestrator: "Orchestrator",
		receive_port: int = 9000,
		send_port: int = 9001,
		send_host: str = "127.0.0.1"
	) -> None:

		self._orchestrator = orchestrator
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._unsubscribe_beat: typing.Optional[typing.Callable[[], None]] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()

		self._dispatcher.map("/play", self._handle_play)
		self._dispatcher.map("/stop", self._handle_stop)
		self._dispatcher.map("/bpm", self._handle_bpm)
		self._dispatcher.map("/instrument", self._handle_instrument)


	async def start (self) -> None:

		"""Start the OSC server and client, and begin forwarding beats."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await server.create_serve_endpoint()
		self._transport = transport

		self._unsubscribe_beat = self._orchestrator.audio_engine.on_beat(self._on_beat)

		logger.info(f"OSC listening on :{self._receive_port}, sending to {self._send_host}:{self._send_port}")


	async def stop (self) -> None:

		"""Stop the OSC server."""

		if self._unsubscribe_beat:
			self._unsubscribe_beat()
			self._unsubscribe_beat = None

		if self._transport:
			self._transport.close()
			self._transport = None
			logger.info("OSC server stopped")


	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message."""

		if self._client:
			try:
				self._client.send_message(address, args)
			except Exception as e:
				logger.warning(f"OSC send error: {e}")


	def _on_beat (self, index: int) -> None:

		self.send("/beat", index)


	# Handlers

	def _handle_play (self, address: str, *args: typing.Any) -> None:

		if not tabloop.selectors.is_audio_on(self._orchestrator.state):
			self._orchestrator.send(tabloop.machine.StartAudio())

		self._orchestrator.send(tabloop.machine.TogglePlayback())

	def _handle_stop (self, address: str, *args: typing.Any) -> None:

		self._orchestrator.send(tabloop.machine.StopAndRewind())

	def _handle_bpm (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		try:
			bpm = float(args[0])
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC BPM argument: {args[0]}")
			return
		if not math.isfinite(bpm):
			logger.warning(f"Ignoring non-finite OSC BPM: {args[0]}")
			return
		self._orchestrator.send(tabloop.machine.SetBpm(bpm=bpm))

	def _handle_instrument (self, address: str, *args: typing.Any) -> None:
		if not args:
			return
		self._orchestrator.send(tabloop.machine.SetInstrument(name=str(args[0])))
