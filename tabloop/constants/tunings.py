"""The default tuning library.

Each tuning lists six open-string note names from the low string to the high
string. A lowercase name is accepted for readability (``e`` for the high E) and
means the same pitch class as its uppercase form.

The in-memory persistence layer seeds itself with these, using the slugged name
as the id (``"Drop D"`` → ``"drop-d"``).
"""

import typing


DEFAULT_TUNINGS: typing.List[typing.Tuple[str, str]] = [
	("Standard", "E A D G B e"),
	("Drop D", "D A D G B e"),
	("Open G", "D G D G B D"),
	("Open D", "D A D F# A D"),
	("DADGAD", "D A D G A D"),
]

STANDARD_TUNING_NAME = "Standard"
