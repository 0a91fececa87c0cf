"""MIDI velocity constants.

Velocity is the MIDI attack strength (0-127).
"""

DEFAULT_CHORD_VELOCITY = 90     # Strummed/held chords
DEFAULT_MELODY_VELOCITY = 100   # Melody notes sit slightly above the chords

MIN_VELOCITY = 0
MAX_VELOCITY = 127
