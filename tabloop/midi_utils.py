import logging
import typing

import mido


logger = logging.getLogger(__name__)


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Select and open a MIDI output device.

	If ``device_name`` is provided, that device is opened or nothing is.
	If ``device_name`` is None, the first available device is used (the full
	list is logged so the right name can be put in the config file).

	A missing device is not an error: the transport keeps time and emits
	beat notifications without sound.

	Returns:
		A tuple of (device_name, midi_out_object) or (None, None) when no port was opened.
	"""

	try:
		outputs = mido.get_output_names()
		logger.info(f"Available MIDI outputs: {outputs}")

		if not outputs:
			logger.warning("No MIDI output devices found - playback will be silent.")
			return None, None

		if device_name is not None:

			if device_name not in outputs:
				logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")
				return None, None

			midi_out = mido.open_output(device_name)
			logger.info(f"Opened MIDI output: {device_name}")
			return device_name, midi_out

		selected_name = outputs[0]
		midi_out = mido.open_output(selected_name)

		if len(outputs) > 1:
			logger.info(f"Several MIDI outputs found - using '{selected_name}'. Set midi.device_name in config.yaml to choose another.")
		else:
			logger.info(f"One MIDI output found - using '{selected_name}'")

		return selected_name, midi_out

	except Exception as e:
		logger.error(f"Failed to open MIDI output: {e}")
		return None, None
