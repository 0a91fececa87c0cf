"""Persistence API consumed by the orchestrator, plus two implementations.

:class:`PersistenceApi` is the contract: list/create/update/delete for
patterns, chords and tunings, all async. Failures are reported by raising one
of the :mod:`tabloop.errors` types; the orchestrator turns the exception's
``str()`` into the message shown to the user.

:class:`InMemoryPersistence` keeps everything in dictionaries and is what the
application runs on when no API server is configured (and what the tests use).
:class:`HttpPersistence` talks to the REST server with ``requests`` in a worker
thread so the event loop (and the transport clock) never blocks on the network.

Listing order follows the server: patterns and chords newest first, tunings in
creation order.
"""

import asyncio
import itertools
import logging
import typing

import requests

import tabloop.constants.tunings
import tabloop.errors
import tabloop.pattern
from tabloop.chords import Chord, Tuning
from tabloop.pattern import PatternRecord


logger = logging.getLogger(__name__)

PatternFields = typing.Mapping[str, str]

PATTERN_FIELDS = ("notes", "key_root", "key_type", "chord_palette", "melody")


class PersistenceApi (typing.Protocol):

	"""The persistence operations the orchestrator depends on."""

	async def list_patterns (self) -> typing.List[PatternRecord]: ...

	async def create_pattern (self, name: str, fields: PatternFields) -> PatternRecord: ...

	async def update_pattern (self, pattern_id: str, name: str, fields: PatternFields) -> None: ...

	async def delete_pattern (self, pattern_id: str) -> None: ...

	async def list_chords (self) -> typing.List[Chord]: ...

	async def create_chord (self, name: str, tab: str, tuning: str) -> Chord: ...

	async def update_chord (self, chord_id: str, name: str, tab: str, tuning: str) -> None: ...

	async def delete_chord (self, chord_id: str) -> None: ...

	async def list_tunings (self) -> typing.List[Tuning]: ...

	async def create_tuning (self, name: str, notes: str) -> Tuning: ...

	async def update_tuning (self, tuning_id: str, name: str, notes: str) -> None: ...

	async def delete_tuning (self, tuning_id: str) -> None: ...


def slugify (name: str) -> str:

	"""``"Drop D"`` → ``"drop-d"``."""

	return "-".join(name.lower().split())


def _pattern_kwargs (fields: PatternFields) -> typing.Dict[str, str]:

	defaults = PatternRecord(id="", name="")

	return {field: str(fields.get(field) or getattr(defaults, field)) for field in PATTERN_FIELDS}


class _Table:

	"""
	One in-memory collection with a unique-name constraint and creation order.
	"""

	def __init__ (self, resource: str) -> None:

		self.resource = resource
		self.rows: typing.Dict[str, typing.Any] = {}
		self.created: typing.Dict[str, int] = {}
		self._counter = itertools.count()

	def check_name (self, name: str, exclude_id: typing.Optional[str] = None) -> None:

		for row_id, row in self.rows.items():
			if row.name == name and row_id != exclude_id:
				raise tabloop.errors.NameConflictError(self.resource)

	def require (self, row_id: str) -> typing.Any:

		try:
			return self.rows[row_id]
		except KeyError:
			raise tabloop.errors.NotFoundError(self.resource) from None

	def insert (self, row: typing.Any) -> typing.Any:

		self.check_name(row.name)
		self.rows[row.id] = row
		self.created[row.id] = next(self._counter)

		return row

	def replace (self, row: typing.Any) -> None:

		self.require(row.id)
		self.check_name(row.name, exclude_id=row.id)
		self.rows[row.id] = row

	def delete (self, row_id: str) -> None:

		self.require(row_id)
		del self.rows[row_id]
		del self.created[row_id]

	def ordered (self, newest_first: bool) -> typing.List[typing.Any]:

		ids = sorted(self.rows, key=self.created.__getitem__, reverse=newest_first)

		return [self.rows[row_id] for row_id in ids]


class InMemoryPersistence:

	"""
	Dictionary-backed persistence with the same constraints as the server.

	Seeded with the default tuning library unless ``seed_tunings`` is False.

	Example:
		```python
		store = InMemoryPersistence()
		chord = await store.create_chord("G", "320003", "Standard")
		await store.create_chord("G", "320033", "Standard")   # NameConflictError
		```
	"""

	def __init__ (self, seed_tunings: bool = True, id_factory: typing.Callable[[], str] = tabloop.pattern.new_id) -> None:

		self._id_factory = id_factory
		self._patterns = _Table("pattern")
		self._chords = _Table("chord")
		self._tunings = _Table("tuning")

		if seed_tunings:
			for name, notes in tabloop.constants.tunings.DEFAULT_TUNINGS:
				self._tunings.insert(Tuning(id=slugify(name), name=name, notes=notes))

	async def list_patterns (self) -> typing.List[PatternRecord]:

		return self._patterns.ordered(newest_first=True)

	async def create_pattern (self, name: str, fields: PatternFields) -> PatternRecord:

		return self._patterns.insert(PatternRecord(id=self._id_factory(), name=name, **_pattern_kwargs(fields)))

	async def update_pattern (self, pattern_id: str, name: str, fields: PatternFields) -> None:

		self._patterns.replace(PatternRecord(id=pattern_id, name=name, **_pattern_kwargs(fields)))

	async def delete_pattern (self, pattern_id: str) -> None:

		self._patterns.delete(pattern_id)

	async def list_chords (self) -> typing.List[Chord]:

		return self._chords.ordered(newest_first=True)

	async def create_chord (self, name: str, tab: str, tuning: str) -> Chord:

		return self._chords.insert(Chord(id=self._id_factory(), name=name, tab=tab, tuning=tuning))

	async def update_chord (self, chord_id: str, name: str, tab: str, tuning: str) -> None:

		self._chords.replace(Chord(id=chord_id, name=name, tab=tab, tuning=tuning))

	async def delete_chord (self, chord_id: str) -> None:

		self._chords.delete(chord_id)

	async def list_tunings (self) -> typing.List[Tuning]:

		return self._tunings.ordered(newest_first=False)

	async def create_tuning (self, name: str, notes: str) -> Tuning:

		return self._tunings.insert(Tuning(id=self._id_factory(), name=name, notes=notes))

	async def update_tuning (self, tuning_id: str, name: str, notes: str) -> None:

		self._tunings.replace(Tuning(id=tuning_id, name=name, notes=notes))

	async def delete_tuning (self, tuning_id: str) -> None:

		self._tunings.delete(tuning_id)


class HttpPersistence:

	"""
	REST client for the pattern server.

	Routes: ``GET/POST /patterns``, ``PUT/DELETE /patterns/{id}`` and the same
	for ``/chords`` and ``/tunings``. Requests run in a worker thread.

	Status mapping: 409 → :class:`~tabloop.errors.NameConflictError`,
	404 → :class:`~tabloop.errors.NotFoundError`, any other failure (including
	network errors) → :class:`~tabloop.errors.TransportError`. When the server
	sends ``{"error": "..."}`` that text becomes the exception message.
	"""

	def __init__ (self, base_url: str, timeout: float = 5.0, session: typing.Optional[requests.Session] = None) -> None:

		self.base_url = base_url.rstrip("/")
		self.timeout = timeout
		self.session = session or requests.Session()

	def _request (self, method: str, path: str, resource: str, body: typing.Optional[typing.Dict[str, typing.Any]] = None) -> typing.Any:

		"""Blocking request; returns the decoded JSON body (or None when there is none)."""

		url = f"{self.base_url}{path}"

		try:
			response = self.session.request(method, url, json=body, timeout=self.timeout)
		except requests.RequestException as e:
			logger.error(f"{method} {url} failed: {e}")
			raise tabloop.errors.TransportError() from e

		try:
			data = response.json() if response.content else None
		except ValueError:
			data = None

		if response.ok:
			return data

		message = data.get("error", "") if isinstance(data, dict) else ""

		logger.warning(f"{method} {url} returned {response.status_code}: {message}")

		if response.status_code == 409:
			raise tabloop.errors.NameConflictError(resource, str(message))

		if response.status_code == 404:
			raise tabloop.errors.NotFoundError(resource, str(message))

		raise tabloop.errors.TransportError(str(message))

	async def _call (self, method: str, path: str, resource: str, body: typing.Optional[typing.Dict[str, typing.Any]] = None) -> typing.Any:

		return await asyncio.to_thread(self._request, method, path, resource, body)

	async def _list (self, path: str, resource: str) -> typing.List[typing.Dict[str, typing.Any]]:

		data = await self._call("GET", path, resource)

		if not isinstance(data, list):
			raise tabloop.errors.TransportError(f"Unexpected response listing {resource}s.")

		return data

	@staticmethod
	def _pattern (data: typing.Dict[str, typing.Any]) -> PatternRecord:

		return PatternRecord(id=str(data["id"]), name=str(data["name"]), **_pattern_kwargs(data))

	@staticmethod
	def _chord (data: typing.Dict[str, typing.Any]) -> Chord:

		tuning = data.get("tuning") or tabloop.constants.tunings.STANDARD_TUNING_NAME

		return Chord(id=str(data["id"]), name=str(data["name"]), tab=str(data["tab"]), tuning=str(tuning))

	@staticmethod
	def _tuning (data: typing.Dict[str, typing.Any]) -> Tuning:

		return Tuning(id=str(data["id"]), name=str(data["name"]), notes=str(data["notes"]))

	async def list_patterns (self) -> typing.List[PatternRecord]:

		return [self._pattern(item) for item in await self._list("/patterns", "pattern")]

	async def create_pattern (self, name: str, fields: PatternFields) -> PatternRecord:

		data = await self._call("POST", "/patterns", "pattern", {"name": name, **_pattern_kwargs(fields)})

		return self._pattern(data)

	async def update_pattern (self, pattern_id: str, name: str, fields: PatternFields) -> None:

		await self._call("PUT", f"/patterns/{pattern_id}", "pattern", {"name": name, **_pattern_kwargs(fields)})

	async def delete_pattern (self, pattern_id: str) -> None:

		await self._call("DELETE", f"/patterns/{pattern_id}", "pattern")

	async def list_chords (self) -> typing.List[Chord]:

		return [self._chord(item) for item in await self._list("/chords", "chord")]

	async def create_chord (self, name: str, tab: str, tuning: str) -> Chord:

		data = await self._call("POST", "/chords", "chord", {"name": name, "tab": tab, "tuning": tuning})

		return self._chord(data)

	async def update_chord (self, chord_id: str, name: str, tab: str, tuning: str) -> None:

		await self._call("PUT", f"/chords/{chord_id}", "chord", {"name": name, "tab": tab, "tuning": tuning})

	async def delete_chord (self, chord_id: str) -> None:

		await self._call("DELETE", f"/chords/{chord_id}", "chord")

	async def list_tunings (self) -> typing.List[Tuning]:

		return [self._tuning(item) for item in await self._list("/tunings", "tuning")]

	async def create_tuning (self, name: str, notes: str) -> Tuning:

		data = await self._call("POST", "/tunings", "tuning", {"name": name, "notes": notes})

		return self._tuning(data)

	async def update_tuning (self, tuning_id: str, name: str, notes: str) -> None:

		await self._call("PUT", f"/tunings/{tuning_id}", "tuning", {"name": name, "notes": notes})

	async def delete_tuning (self, tuning_id: str) -> None:

		await self._call("DELETE", f"/tunings/{tuning_id}", "tuning")
