"""Pulse-based timing constants.

The transport uses **24 pulses per quarter note** (PPQN = 24) as its internal time base.
The pattern grid is built from 16th-note slots, so one slot is six pulses regardless of
the section's time signature: a 6/8 measure holds twelve 16th-note slots, a 4/4 measure
sixteen.

Compiled timelines are expressed in pulses rather than seconds so that a tempo change
only alters how long a pulse lasts and never requires recompiling the timeline.
"""

MIDI_THIRTYSECOND_NOTE = 3
MIDI_SIXTEENTH_NOTE = 6
MIDI_EIGHTH_NOTE = 12
MIDI_QUARTER_NOTE = 24
MIDI_HALF_NOTE = 48
MIDI_WHOLE_NOTE = 96

# One grid slot.
PULSES_PER_SLOT = MIDI_SIXTEENTH_NOTE

# Loop length used when the timeline is empty (one measure of 4/4).
DEFAULT_LOOP_PULSES = MIDI_WHOLE_NOTE
