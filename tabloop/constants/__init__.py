"""Constants for tabloop.

This package contains:

- ``tabloop.constants.pulses`` - Pulse-based timing (transport and compiler)
- ``tabloop.constants.velocity`` - MIDI velocity defaults for chords and melody
- ``tabloop.constants.tunings`` - The default tuning library

The most used pulse constants are re-exported here, so
``tabloop.constants.PULSES_PER_SLOT`` works without importing ``pulses``.
"""

# These match the values in tabloop.constants.pulses.

MIDI_SIXTEENTH_NOTE = 6
MIDI_QUARTER_NOTE = 24
MIDI_WHOLE_NOTE = 96

PULSES_PER_SLOT = MIDI_SIXTEENTH_NOTE
