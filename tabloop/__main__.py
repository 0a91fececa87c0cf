import asyncio
import logging
import os
import typing

import yaml

import tabloop.audio_engine
import tabloop.machine
import tabloop.orchestrator
import tabloop.osc
import tabloop.persistence
import tabloop.web_ui


logger = logging.getLogger(__name__)


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		return yaml.safe_load(f) or {}


def build_persistence (config: dict) -> tabloop.persistence.PersistenceApi:

	"""Use the REST server when ``api.base_url`` is set, otherwise keep everything in memory."""

	base_url = (config.get('api') or {}).get('base_url')

	if base_url:
		logger.info(f"Using pattern server at {base_url}")
		return tabloop.persistence.HttpPersistence(base_url)

	logger.info("No api.base_url configured - patterns are kept in memory only")
	return tabloop.persistence.InMemoryPersistence()


async def run (config: dict) -> None:

	"""
	Wire the engine, orchestrator and surfaces together and run until cancelled.
	"""

	midi_device: typing.Optional[str] = (config.get('midi') or {}).get('device_name')
	sequencer_config = config.get('sequencer') or {}
	initial_bpm = sequencer_config.get('initial_bpm', 120)
	instrument = sequencer_config.get('instrument', 'piano')

	web_config = config.get('web_ui') or {}
	osc_config = config.get('osc') or {}

	engine = tabloop.audio_engine.AudioEngine(output_device_name=midi_device, initial_bpm=initial_bpm, instrument=instrument)

	orchestrator = tabloop.orchestrator.Orchestrator(
		build_persistence(config),
		engine,
		tabloop.machine.initial_state(bpm=initial_bpm, instrument=instrument)
	)

	await orchestrator.start()

	web_ui = tabloop.web_ui.WebUI(
		orchestrator,
		http_port = web_config.get('http_port', 8080),
		ws_port = web_config.get('ws_port', 8765)
	)

	osc_server = tabloop.osc.OscServer(
		orchestrator,
		receive_port = osc_config.get('receive_port', 9000),
		send_port = osc_config.get('send_port', 9001)
	)

	await web_ui.start()
	await osc_server.start()

	try:
		await asyncio.Event().wait()
	finally:
		await osc_server.stop()
		await web_ui.stop()
		await orchestrator.close()
		await engine.shutdown()


def main () -> None:

	"""
	Main entry point for the tabloop application.
	"""

	logging.basicConfig(level=logging.INFO)

	logger.info("tabloop starting...")

	config = load_config()

	try:
		asyncio.run(run(config))
	except KeyboardInterrupt:
		logger.info("Stopping...")


if __name__ == "__main__":
	main()
