"""Error taxonomy shared by the persistence layer and the orchestrator.

Persistence implementations raise these; the orchestrator turns any of them into
a single human-readable message stored in its state. Nothing here is raised by
the schedule compiler, which degrades to silence instead of failing.
"""


class TabloopError(Exception):

	"""Base class for all tabloop errors."""

	default_message = "An unexpected error occurred."

	def __init__ (self, message: str = "") -> None:

		super().__init__(message or self.default_message)


class NameConflictError(TabloopError):

	"""A create or update violated the unique-name constraint of a resource."""

	def __init__ (self, resource: str = "record", message: str = "") -> None:

		self.resource = resource
		super().__init__(message or f"A {resource} with this name already exists.")


class NotFoundError(TabloopError):

	"""An update or delete targeted an id that does not exist."""

	def __init__ (self, resource: str = "record", message: str = "") -> None:

		self.resource = resource
		super().__init__(message or f"{resource.capitalize()} not found.")


class TransportError(TabloopError):

	"""Network or database failure while talking to the persistence layer."""

	default_message = "A database error occurred."


class ValidationError(TabloopError):

	"""Malformed input rejected at the edit boundary (bad tab, tuning or JSON)."""

	default_message = "Invalid input."
