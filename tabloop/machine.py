"""Orchestration state machine.

The application's behaviour as one pure function::

	new_state, effects = transition(state, command)

``AppState`` is an immutable value. The parallel regions of the running
application are independent fields:

	phase        initializing → running
	mode         editing | showing_new_pattern_dialog | selecting_chord_for_slot
	audio        off | on
	save_status  idle | creating_* | updating_* | deleting_* | reloading | reloading_and_resetting
	view_mode    json | visual

Nothing here performs I/O. Work that has to happen outside the state (talking to
the persistence layer, driving the audio engine) is returned as effect values,
which the :class:`~tabloop.orchestrator.Orchestrator` executes. Results come back
in as commands (``MutationSucceeded``, ``LibrariesLoaded`` ...).

Invariants:
	1. At most one mutation is in flight: only ``idle`` accepts a mutation
	   command, and accepting one moves save_status out of ``idle``.
	2. Every accepted mutation emits exactly one ``Persist`` effect.
	3. A mutation's payload is applied to the state only after it succeeds.
	4. Any transition that changes the document or the chord/tuning libraries
	   also emits ``UpdateSchedule``, so playback always matches the state.
	5. A command that is unknown or not valid in the current state returns the
	   same state object and no effects.
"""

import dataclasses
import enum
import logging
import math
import typing

import tabloop.chords
import tabloop.edits
import tabloop.errors
import tabloop.instruments
import tabloop.pattern
from tabloop.chords import Chord, Tuning
from tabloop.edits import SlotRef
from tabloop.pattern import PatternDocument, PatternRecord


logger = logging.getLogger(__name__)


class Phase (enum.Enum):

	INITIALIZING = "initializing"
	RUNNING = "running"


class Mode (enum.Enum):

	EDITING = "editing"
	SHOWING_NEW_PATTERN_DIALOG = "showing_new_pattern_dialog"
	SELECTING_CHORD_FOR_SLOT = "selecting_chord_for_slot"


class Audio (enum.Enum):

	OFF = "off"
	ON = "on"


class ViewMode (enum.Enum):

	JSON = "json"
	VISUAL = "visual"


class SaveKind (enum.Enum):

	IDLE = "idle"
	CREATING_PATTERN = "creating_pattern"
	CREATING_CHORD = "creating_chord"
	CREATING_TUNING = "creating_tuning"
	UPDATING_PATTERN = "updating_pattern"
	UPDATING_CHORD = "updating_chord"
	UPDATING_TUNING = "updating_tuning"
	DELETING_PATTERN = "deleting_pattern"
	DELETING_CHORD = "deleting_chord"
	DELETING_TUNING = "deleting_tuning"
	RELOADING = "reloading"
	RELOADING_AND_RESETTING = "reloading_and_resetting"


RELOADING_KINDS = frozenset({SaveKind.RELOADING, SaveKind.RELOADING_AND_RESETTING})
MUTATING_KINDS = frozenset(SaveKind) - RELOADING_KINDS - {SaveKind.IDLE}


@dataclasses.dataclass(frozen=True)
class SaveStatus:

	"""
	The saveStatus region.

	Attributes:
		kind: Which mutation (or reload) is in flight.
		target_id: The record a pattern update/delete is aimed at.
		pending_document: Document to open once a pattern create succeeds.
		pending_name: Name to show once a pattern create succeeds.
	"""

	kind: SaveKind = SaveKind.IDLE
	target_id: typing.Optional[str] = None
	pending_document: typing.Optional[PatternDocument] = None
	pending_name: typing.Optional[str] = None

	@property
	def is_idle (self) -> bool:

		return self.kind is SaveKind.IDLE


IDLE = SaveStatus()


@dataclasses.dataclass(frozen=True)
class AppState:

	"""
	The complete application state.
	"""

	phase: Phase = Phase.INITIALIZING
	mode: Mode = Mode.EDITING
	audio: Audio = Audio.OFF
	save_status: SaveStatus = IDLE
	view_mode: ViewMode = ViewMode.VISUAL

	document: PatternDocument = dataclasses.field(default_factory=tabloop.pattern.new_document)
	patterns: typing.Tuple[PatternRecord, ...] = ()
	chords: typing.Tuple[Chord, ...] = ()
	tunings: typing.Tuple[Tuning, ...] = ()

	pattern_name: str = ""
	selected_pattern_id: typing.Optional[str] = None
	error_message: typing.Optional[str] = None
	new_pattern_name: str = ""
	active_slot: typing.Optional[SlotRef] = None
	clipboard: typing.Optional[str] = None
	editing_chord_id: typing.Optional[str] = None
	editing_tuning_id: typing.Optional[str] = None

	instrument: str = tabloop.instruments.PIANO.name
	bpm: float = 120
	playing: bool = False
	active_beat: int = -1


def initial_state (bpm: float = 120, instrument: str = tabloop.instruments.PIANO.name) -> AppState:

	return AppState(bpm=bpm, instrument=instrument)


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class FetchLibraries:

	"""Load patterns, chords and tunings; answer with LibrariesLoaded or LoadFailed."""


@dataclasses.dataclass(frozen=True)
class Persist:

	"""
	Call ``operation`` (a :class:`~tabloop.persistence.PersistenceApi` method
	name) with ``payload`` as keyword arguments; answer with MutationSucceeded
	or MutationFailed.
	"""

	operation: str
	payload: typing.Mapping[str, typing.Any] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class UpdateSchedule:

	document: PatternDocument
	chords: typing.Tuple[Chord, ...]
	tunings: typing.Tuple[Tuning, ...]


@dataclasses.dataclass(frozen=True)
class InitializeAudio:

	pass


@dataclasses.dataclass(frozen=True)
class TogglePlaybackEffect:

	pass


@dataclasses.dataclass(frozen=True)
class StopAndRewindEffect:

	pass


@dataclasses.dataclass(frozen=True)
class SetInstrumentEffect:

	name: str


@dataclasses.dataclass(frozen=True)
class SetBpmEffect:

	bpm: float


Effect = typing.Union[
	FetchLibraries, Persist, UpdateSchedule, InitializeAudio,
	TogglePlaybackEffect, StopAndRewindEffect, SetInstrumentEffect, SetBpmEffect
]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

# Lifecycle and results fed back by the orchestrator.

@dataclasses.dataclass(frozen=True)
class Start:
	pass


@dataclasses.dataclass(frozen=True)
class LibrariesLoaded:

	patterns: typing.Tuple[PatternRecord, ...] = ()
	chords: typing.Tuple[Chord, ...] = ()
	tunings: typing.Tuple[Tuning, ...] = ()


@dataclasses.dataclass(frozen=True)
class LoadFailed:

	message: str


@dataclasses.dataclass(frozen=True)
class MutationSucceeded:

	"""``result`` is whatever the persistence call returned (the created record for creates)."""

	result: typing.Any = None


@dataclasses.dataclass(frozen=True)
class MutationFailed:

	message: str


# New pattern dialog.

@dataclasses.dataclass(frozen=True)
class NewPattern:
	pass


@dataclasses.dataclass(frozen=True)
class UpdateNewPatternName:

	name: str


@dataclasses.dataclass(frozen=True)
class CancelNewPattern:
	pass


@dataclasses.dataclass(frozen=True)
class CreatePattern:

	"""Create a pattern from the dialog; a blank ``name`` uses the dialog's captured name."""

	name: str = ""


# Slot selection.

@dataclasses.dataclass(frozen=True)
class SelectSlot:

	section_id: str
	measure_id: str
	slot_index: int


@dataclasses.dataclass(frozen=True)
class AssignChordToSlot:

	chord_id: str


@dataclasses.dataclass(frozen=True)
class ClearSlot:
	pass


@dataclasses.dataclass(frozen=True)
class CancelChordSelection:
	pass


# Structural edits.

@dataclasses.dataclass(frozen=True)
class AddSection:

	time_signature: str = "4/4"


@dataclasses.dataclass(frozen=True)
class DuplicateSection:

	section_id: str


@dataclasses.dataclass(frozen=True)
class DeleteSection:

	section_id: str


@dataclasses.dataclass(frozen=True)
class MoveSection:

	section_id: str
	new_index: int


@dataclasses.dataclass(frozen=True)
class AddMeasure:

	section_id: str


@dataclasses.dataclass(frozen=True)
class DeleteMeasure:

	section_id: str
	measure_id: str


@dataclasses.dataclass(frozen=True)
class SetTimeSignature:

	section_id: str
	time_signature: str


@dataclasses.dataclass(frozen=True)
class MoveSlot:

	source: SlotRef
	target: SlotRef


@dataclasses.dataclass(frozen=True)
class CopySlot:

	slot: SlotRef


@dataclasses.dataclass(frozen=True)
class PasteSlot:

	slot: SlotRef


@dataclasses.dataclass(frozen=True)
class AddMelodyNote:

	section_id: str
	time: int
	pitch: str
	duration: int = 1


@dataclasses.dataclass(frozen=True)
class RemoveMelodyNote:

	section_id: str
	index: int


@dataclasses.dataclass(frozen=True)
class SetKey:

	root: str
	key_type: str


@dataclasses.dataclass(frozen=True)
class TogglePaletteChord:

	chord_id: str


@dataclasses.dataclass(frozen=True)
class UpdatePatternName:

	name: str


@dataclasses.dataclass(frozen=True)
class UpdatePatternJson:

	text: str


@dataclasses.dataclass(frozen=True)
class EditChord:

	chord_id: str


@dataclasses.dataclass(frozen=True)
class CancelEditChord:
	pass


@dataclasses.dataclass(frozen=True)
class EditTuning:

	tuning_id: str


@dataclasses.dataclass(frozen=True)
class CancelEditTuning:
	pass


@dataclasses.dataclass(frozen=True)
class DismissError:
	pass


@dataclasses.dataclass(frozen=True)
class SelectPattern:

	pattern_id: str


@dataclasses.dataclass(frozen=True)
class ToggleView:
	pass


# Audio and playback.

@dataclasses.dataclass(frozen=True)
class StartAudio:
	pass


@dataclasses.dataclass(frozen=True)
class StopAudio:
	pass


@dataclasses.dataclass(frozen=True)
class TogglePlayback:
	pass


@dataclasses.dataclass(frozen=True)
class StopAndRewind:
	pass


@dataclasses.dataclass(frozen=True)
class SetInstrument:

	name: str


@dataclasses.dataclass(frozen=True)
class SetBpm:

	bpm: float


@dataclasses.dataclass(frozen=True)
class Beat:

	index: int


# Mutations.

@dataclasses.dataclass(frozen=True)
class UpdateSavedPattern:

	"""Save the open document and name over the selected pattern."""


@dataclasses.dataclass(frozen=True)
class DeletePattern:

	pattern_id: str


@dataclasses.dataclass(frozen=True)
class CreateChord:

	name: str
	tab: str
	tuning: str


@dataclasses.dataclass(frozen=True)
class UpdateChord:

	chord_id: str
	name: str
	tab: str
	tuning: str


@dataclasses.dataclass(frozen=True)
class DeleteChord:

	chord_id: str


@dataclasses.dataclass(frozen=True)
class CreateTuning:

	name: str
	notes: str


@dataclasses.dataclass(frozen=True)
class UpdateTuning:

	tuning_id: str
	name: str
	notes: str


@dataclasses.dataclass(frozen=True)
class DeleteTuning:

	tuning_id: str


Result = typing.Optional[typing.Tuple[AppState, typing.List[Effect]]]
Handler = typing.Callable[[AppState, typing.Any], Result]

_HANDLERS: typing.Dict[type, Handler] = {}


def _handles (*command_types: type) -> typing.Callable[[Handler], Handler]:

	def register (fn: Handler) -> Handler:
		for command_type in command_types:
			_HANDLERS[command_type] = fn
		return fn

	return register


def transition (state: AppState, command: typing.Any) -> typing.Tuple[AppState, typing.Tuple[Effect, ...]]:

	"""Apply one command.

	Returns the new state and the effects to execute, in order. Commands that
	are unknown or invalid in the current state return ``state`` itself and no
	effects.
	"""

	handler = _HANDLERS.get(type(command))

	if handler is None:
		return state, ()

	result = handler(state, command)

	if result is None:
		return state, ()

	new_state, effects = result

	if new_state.document != state.document or new_state.chords != state.chords or new_state.tunings != state.tunings:
		effects = effects + [UpdateSchedule(document=new_state.document, chords=new_state.chords, tunings=new_state.tunings)]

	return new_state, tuple(effects)


def commands () -> typing.Dict[str, type]:

	"""Every command class by name (used to decode commands arriving over the wire)."""

	return {command_type.__name__: command_type for command_type in _HANDLERS}


# ---------------------------------------------------------------------------
# Guards and helpers
# ---------------------------------------------------------------------------

def _running (state: AppState) -> bool:

	return state.phase is Phase.RUNNING


def _editing (state: AppState) -> bool:

	return state.phase is Phase.RUNNING and state.mode is Mode.EDITING


def _fail (state: AppState, message: str) -> Result:

	return dataclasses.replace(state, error_message=message), []


def _edit (state: AppState, fn: typing.Callable[[PatternDocument], PatternDocument]) -> Result:

	"""Run a structural edit while editing; ValueError/ValidationError become the error message."""

	if not _editing(state):
		return None

	try:
		document = fn(state.document)
	except (ValueError, tabloop.errors.ValidationError) as e:
		return _fail(state, str(e))

	if document == state.document:
		return None

	return dataclasses.replace(state, document=document), []


def _begin_mutation (state: AppState, status: SaveStatus, operation: str, payload: typing.Dict[str, typing.Any]) -> Result:

	"""Accept a mutation: leave idle and emit exactly one Persist effect."""

	return dataclasses.replace(state, save_status=status), [Persist(operation=operation, payload=payload)]


def _can_mutate (state: AppState) -> bool:

	return _editing(state) and state.save_status.is_idle


# ---------------------------------------------------------------------------
# Lifecycle and results
# ---------------------------------------------------------------------------

@_handles(Start)
def _on_start (state: AppState, command: Start) -> Result:

	if state.phase is not Phase.INITIALIZING:
		return None

	return state, [FetchLibraries()]


@_handles(LibrariesLoaded)
def _on_libraries_loaded (state: AppState, command: LibrariesLoaded) -> Result:

	libraries = dict(patterns=tuple(command.patterns), chords=tuple(command.chords), tunings=tuple(command.tunings))

	if state.phase is Phase.INITIALIZING:
		return dataclasses.replace(state, phase=Phase.RUNNING, **libraries), []

	if state.save_status.kind not in RELOADING_KINDS:
		return None

	new_state = dataclasses.replace(state, save_status=IDLE, error_message=None, **libraries)

	if state.save_status.kind is SaveKind.RELOADING_AND_RESETTING:
		new_state = dataclasses.replace(
			new_state,
			document = tabloop.pattern.new_document(),
			pattern_name = "",
			selected_pattern_id = None
		)

	return new_state, []


@_handles(LoadFailed)
def _on_load_failed (state: AppState, command: LoadFailed) -> Result:

	if state.phase is Phase.INITIALIZING:
		return dataclasses.replace(state, phase=Phase.RUNNING, error_message=command.message), []

	if state.save_status.kind not in RELOADING_KINDS:
		return None

	return dataclasses.replace(state, save_status=IDLE, error_message=command.message), []


@_handles(MutationSucceeded)
def _on_mutation_succeeded (state: AppState, command: MutationSucceeded) -> Result:

	status = state.save_status

	if status.kind not in MUTATING_KINDS:
		return None

	new_state = dataclasses.replace(state, save_status=SaveStatus(kind=SaveKind.RELOADING))

	if status.kind is SaveKind.CREATING_PATTERN:
		new_state = dataclasses.replace(
			new_state,
			document = status.pending_document or new_state.document,
			pattern_name = status.pending_name or "",
			selected_pattern_id = getattr(command.result, "id", None)
		)

	elif status.kind is SaveKind.UPDATING_CHORD:
		new_state = dataclasses.replace(new_state, editing_chord_id=None)

	elif status.kind is SaveKind.UPDATING_TUNING:
		new_state = dataclasses.replace(new_state, editing_tuning_id=None)

	elif status.kind is SaveKind.DELETING_PATTERN and status.target_id is not None and status.target_id == state.selected_pattern_id:
		new_state = dataclasses.replace(new_state, save_status=SaveStatus(kind=SaveKind.RELOADING_AND_RESETTING))

	return new_state, [FetchLibraries()]


@_handles(MutationFailed)
def _on_mutation_failed (state: AppState, command: MutationFailed) -> Result:

	if state.save_status.kind not in MUTATING_KINDS:
		return None

	return dataclasses.replace(state, save_status=IDLE, error_message=command.message), []


# ---------------------------------------------------------------------------
# New pattern dialog
# ---------------------------------------------------------------------------

@_handles(NewPattern)
def _on_new_pattern (state: AppState, command: NewPattern) -> Result:

	if not _editing(state):
		return None

	return dataclasses.replace(state, mode=Mode.SHOWING_NEW_PATTERN_DIALOG, new_pattern_name=""), []


@_handles(UpdateNewPatternName)
def _on_update_new_pattern_name (state: AppState, command: UpdateNewPatternName) -> Result:

	if state.mode is not Mode.SHOWING_NEW_PATTERN_DIALOG:
		return None

	return dataclasses.replace(state, new_pattern_name=command.name), []


@_handles(CancelNewPattern)
def _on_cancel_new_pattern (state: AppState, command: CancelNewPattern) -> Result:

	if state.mode is not Mode.SHOWING_NEW_PATTERN_DIALOG:
		return None

	return dataclasses.replace(state, mode=Mode.EDITING, new_pattern_name=""), []


@_handles(CreatePattern)
def _on_create_pattern (state: AppState, command: CreatePattern) -> Result:

	if state.mode is not Mode.SHOWING_NEW_PATTERN_DIALOG or not state.save_status.is_idle:
		return None

	name = (command.name or state.new_pattern_name).strip()

	if not name:
		return None

	document = tabloop.pattern.new_document()
	status = SaveStatus(kind=SaveKind.CREATING_PATTERN, pending_document=document, pending_name=name)

	new_state = dataclasses.replace(state, mode=Mode.EDITING, new_pattern_name="")

	return _begin_mutation(new_state, status, "create_pattern", {"name": name, "fields": document.to_record_fields()})


# ---------------------------------------------------------------------------
# Slot selection
# ---------------------------------------------------------------------------

@_handles(SelectSlot)
def _on_select_slot (state: AppState, command: SelectSlot) -> Result:

	if not _editing(state) or not state.document.has_slot(command.section_id, command.measure_id, command.slot_index):
		return None

	slot = SlotRef(command.section_id, command.measure_id, command.slot_index)

	return dataclasses.replace(state, mode=Mode.SELECTING_CHORD_FOR_SLOT, active_slot=slot), []


def _leave_slot_selection (state: AppState, chord_id: typing.Optional[str], write: bool) -> Result:

	if state.mode is not Mode.SELECTING_CHORD_FOR_SLOT or state.active_slot is None:
		return None

	document = tabloop.edits.set_slot(state.document, state.active_slot, chord_id) if write else state.document

	return dataclasses.replace(state, mode=Mode.EDITING, active_slot=None, document=document), []


@_handles(AssignChordToSlot)
def _on_assign_chord (state: AppState, command: AssignChordToSlot) -> Result:

	return _leave_slot_selection(state, command.chord_id, write=True)


@_handles(ClearSlot)
def _on_clear_slot (state: AppState, command: ClearSlot) -> Result:

	return _leave_slot_selection(state, None, write=True)


@_handles(CancelChordSelection)
def _on_cancel_chord_selection (state: AppState, command: CancelChordSelection) -> Result:

	return _leave_slot_selection(state, None, write=False)


# ---------------------------------------------------------------------------
# Structural edits
# ---------------------------------------------------------------------------

@_handles(AddSection)
def _on_add_section (state: AppState, command: AddSection) -> Result:

	return _edit(state, lambda doc: tabloop.edits.add_section(doc, tabloop.pattern.TimeSignature.parse(command.time_signature)))


@_handles(DuplicateSection)
def _on_duplicate_section (state: AppState, command: DuplicateSection) -> Result:

	return _edit(state, lambda doc: tabloop.edits.duplicate_section(doc, command.section_id))


@_handles(DeleteSection)
def _on_delete_section (state: AppState, command: DeleteSection) -> Result:

	return _edit(state, lambda doc: tabloop.edits.delete_section(doc, command.section_id))


@_handles(MoveSection)
def _on_move_section (state: AppState, command: MoveSection) -> Result:

	return _edit(state, lambda doc: tabloop.edits.move_section(doc, command.section_id, command.new_index))


@_handles(AddMeasure)
def _on_add_measure (state: AppState, command: AddMeasure) -> Result:

	return _edit(state, lambda doc: tabloop.edits.add_measure(doc, command.section_id))


@_handles(DeleteMeasure)
def _on_delete_measure (state: AppState, command: DeleteMeasure) -> Result:

	return _edit(state, lambda doc: tabloop.edits.delete_measure(doc, command.section_id, command.measure_id))


@_handles(SetTimeSignature)
def _on_set_time_signature (state: AppState, command: SetTimeSignature) -> Result:

	return _edit(state, lambda doc: tabloop.edits.set_time_signature(doc, command.section_id, tabloop.pattern.TimeSignature.parse(command.time_signature)))


@_handles(MoveSlot)
def _on_move_slot (state: AppState, command: MoveSlot) -> Result:

	return _edit(state, lambda doc: tabloop.edits.move_slot(doc, command.source, command.target))


@_handles(CopySlot)
def _on_copy_slot (state: AppState, command: CopySlot) -> Result:

	if not _editing(state):
		return None

	chord_id = state.document.slot(command.slot.section_id, command.slot.measure_id, command.slot.slot_index)

	if chord_id is None:
		return None

	return dataclasses.replace(state, clipboard=chord_id), []


@_handles(PasteSlot)
def _on_paste_slot (state: AppState, command: PasteSlot) -> Result:

	return _edit(state, lambda doc: tabloop.edits.paste_slot(doc, command.slot, state.clipboard))


@_handles(AddMelodyNote)
def _on_add_melody_note (state: AppState, command: AddMelodyNote) -> Result:

	if tabloop.chords.note_name_to_midi(command.pitch) is None:
		return _fail(state, f"Unknown pitch: {command.pitch!r}") if _editing(state) else None

	note = tabloop.pattern.MelodyNote(time=command.time, pitch=command.pitch, duration=command.duration)

	return _edit(state, lambda doc: tabloop.edits.add_melody_note(doc, command.section_id, note))


@_handles(RemoveMelodyNote)
def _on_remove_melody_note (state: AppState, command: RemoveMelodyNote) -> Result:

	return _edit(state, lambda doc: tabloop.edits.remove_melody_note(doc, command.section_id, command.index))


@_handles(SetKey)
def _on_set_key (state: AppState, command: SetKey) -> Result:

	return _edit(state, lambda doc: tabloop.edits.set_key(doc, command.root, command.key_type))


@_handles(TogglePaletteChord)
def _on_toggle_palette_chord (state: AppState, command: TogglePaletteChord) -> Result:

	return _edit(state, lambda doc: tabloop.edits.toggle_palette_chord(doc, command.chord_id))


@_handles(UpdatePatternJson)
def _on_update_pattern_json (state: AppState, command: UpdatePatternJson) -> Result:

	return _edit(state, lambda doc: tabloop.pattern.document_from_json(command.text, base=doc))


@_handles(UpdatePatternName)
def _on_update_pattern_name (state: AppState, command: UpdatePatternName) -> Result:

	if not _editing(state):
		return None

	return dataclasses.replace(state, pattern_name=command.name), []


@_handles(EditChord)
def _on_edit_chord (state: AppState, command: EditChord) -> Result:

	if not _editing(state) or not any(chord.id == command.chord_id for chord in state.chords):
		return None

	return dataclasses.replace(state, editing_chord_id=command.chord_id), []


@_handles(CancelEditChord)
def _on_cancel_edit_chord (state: AppState, command: CancelEditChord) -> Result:

	if not _editing(state):
		return None

	return dataclasses.replace(state, editing_chord_id=None), []


@_handles(EditTuning)
def _on_edit_tuning (state: AppState, command: EditTuning) -> Result:

	if not _editing(state) or not any(tuning.id == command.tuning_id for tuning in state.tunings):
		return None

	return dataclasses.replace(state, editing_tuning_id=command.tuning_id), []


@_handles(CancelEditTuning)
def _on_cancel_edit_tuning (state: AppState, command: CancelEditTuning) -> Result:

	if not _editing(state):
		return None

	return dataclasses.replace(state, editing_tuning_id=None), []


@_handles(DismissError)
def _on_dismiss_error (state: AppState, command: DismissError) -> Result:

	if state.error_message is None:
		return None

	return dataclasses.replace(state, error_message=None), []


@_handles(SelectPattern)
def _on_select_pattern (state: AppState, command: SelectPattern) -> Result:

	if not _editing(state):
		return None

	record = next((pattern for pattern in state.patterns if pattern.id == command.pattern_id), None)

	if record is None:
		return None

	try:
		document = PatternDocument.from_record(record)
	except tabloop.errors.ValidationError as e:
		return _fail(state, str(e))

	return dataclasses.replace(state, document=document, pattern_name=record.name, selected_pattern_id=record.id), []


@_handles(ToggleView)
def _on_toggle_view (state: AppState, command: ToggleView) -> Result:

	if not _running(state):
		return None

	view_mode = ViewMode.JSON if state.view_mode is ViewMode.VISUAL else ViewMode.VISUAL

	return dataclasses.replace(state, view_mode=view_mode), []


# ---------------------------------------------------------------------------
# Audio and playback
# ---------------------------------------------------------------------------

@_handles(StartAudio)
def _on_start_audio (state: AppState, command: StartAudio) -> Result:

	if not _running(state) or state.audio is Audio.ON:
		return None

	return dataclasses.replace(state, audio=Audio.ON), [InitializeAudio()]


@_handles(StopAudio)
def _on_stop_audio (state: AppState, command: StopAudio) -> Result:

	if not _running(state) or state.audio is Audio.OFF:
		return None

	new_state = dataclasses.replace(state, audio=Audio.OFF, playing=False, active_beat=-1)

	return new_state, [StopAndRewindEffect()]


@_handles(TogglePlayback)
def _on_toggle_playback (state: AppState, command: TogglePlayback) -> Result:

	if not _running(state) or state.audio is not Audio.ON:
		return None

	return dataclasses.replace(state, playing=not state.playing), [TogglePlaybackEffect()]


@_handles(StopAndRewind)
def _on_stop_and_rewind (state: AppState, command: StopAndRewind) -> Result:

	if not _running(state):
		return None

	return dataclasses.replace(state, playing=False, active_beat=-1), [StopAndRewindEffect()]


@_handles(SetInstrument)
def _on_set_instrument (state: AppState, command: SetInstrument) -> Result:

	if not _running(state):
		return None

	if command.name not in tabloop.instruments.INSTRUMENTS:
		return _fail(state, f"Unknown instrument: {command.name!r}")

	return dataclasses.replace(state, instrument=command.name), [SetInstrumentEffect(name=command.name)]


@_handles(SetBpm)
def _on_set_bpm (state: AppState, command: SetBpm) -> Result:

	if not _running(state):
		return None

	if isinstance(command.bpm, bool) or not isinstance(command.bpm, (int, float)) or not math.isfinite(command.bpm) or command.bpm <= 0:
		return _fail(state, "BPM must be a positive number.")

	return dataclasses.replace(state, bpm=command.bpm), [SetBpmEffect(bpm=command.bpm)]


@_handles(Beat)
def _on_beat (state: AppState, command: Beat) -> Result:

	if command.index == state.active_beat:
		return None

	return dataclasses.replace(state, active_beat=command.index), []


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@_handles(UpdateSavedPattern)
def _on_update_saved_pattern (state: AppState, command: UpdateSavedPattern) -> Result:

	if not _can_mutate(state) or state.selected_pattern_id is None:
		return None

	name = state.pattern_name.strip()

	if not name:
		return _fail(state, "Pattern name cannot be empty.")

	status = SaveStatus(kind=SaveKind.UPDATING_PATTERN, target_id=state.selected_pattern_id)
	payload = {"pattern_id": state.selected_pattern_id, "name": name, "fields": state.document.to_record_fields()}

	return _begin_mutation(state, status, "update_pattern", payload)


@_handles(DeletePattern)
def _on_delete_pattern (state: AppState, command: DeletePattern) -> Result:

	if not _can_mutate(state):
		return None

	status = SaveStatus(kind=SaveKind.DELETING_PATTERN, target_id=command.pattern_id)

	return _begin_mutation(state, status, "delete_pattern", {"pattern_id": command.pattern_id})


def _chord_payload (name: str, tab: str, tuning: str) -> typing.Union[typing.Dict[str, str], str]:

	"""Validated chord fields, or an error message."""

	if not name.strip():
		return "Chord name cannot be empty."

	try:
		tab = tabloop.chords.validate_tab(tab)
	except tabloop.errors.ValidationError as e:
		return str(e)

	return {"name": name.strip(), "tab": tab, "tuning": tuning}


def _tuning_payload (name: str, notes: str) -> typing.Union[typing.Dict[str, str], str]:

	"""Validated tuning fields, or an error message."""

	if not name.strip():
		return "Tuning name cannot be empty."

	try:
		notes = tabloop.chords.validate_tuning_notes(notes)
	except tabloop.errors.ValidationError as e:
		return str(e)

	return {"name": name.strip(), "notes": notes}


@_handles(CreateChord)
def _on_create_chord (state: AppState, command: CreateChord) -> Result:

	if not _can_mutate(state):
		return None

	payload = _chord_payload(command.name, command.tab, command.tuning)

	if isinstance(payload, str):
		return _fail(state, payload)

	return _begin_mutation(state, SaveStatus(kind=SaveKind.CREATING_CHORD), "create_chord", payload)


@_handles(UpdateChord)
def _on_update_chord (state: AppState, command: UpdateChord) -> Result:

	if not _can_mutate(state):
		return None

	payload = _chord_payload(command.name, command.tab, command.tuning)

	if isinstance(payload, str):
		return _fail(state, payload)

	status = SaveStatus(kind=SaveKind.UPDATING_CHORD, target_id=command.chord_id)

	return _begin_mutation(state, status, "update_chord", {"chord_id": command.chord_id, **payload})


@_handles(DeleteChord)
def _on_delete_chord (state: AppState, command: DeleteChord) -> Result:

	if not _can_mutate(state):
		return None

	status = SaveStatus(kind=SaveKind.DELETING_CHORD, target_id=command.chord_id)

	return _begin_mutation(state, status, "delete_chord", {"chord_id": command.chord_id})


@_handles(CreateTuning)
def _on_create_tuning (state: AppState, command: CreateTuning) -> Result:

	if not _can_mutate(state):
		return None

	payload = _tuning_payload(command.name, command.notes)

	if isinstance(payload, str):
		return _fail(state, payload)

	return _begin_mutation(state, SaveStatus(kind=SaveKind.CREATING_TUNING), "create_tuning", payload)


@_handles(UpdateTuning)
def _on_update_tuning (state: AppState, command: UpdateTuning) -> Result:

	if not _can_mutate(state):
		return None

	payload = _tuning_payload(command.name, command.notes)

	if isinstance(payload, str):
		return _fail(state, payload)

	status = SaveStatus(kind=SaveKind.UPDATING_TUNING, target_id=command.tuning_id)

	return _begin_mutation(state, status, "update_tuning", {"tuning_id": command.tuning_id, **payload})


@_handles(DeleteTuning)
def _on_delete_tuning (state: AppState, command: DeleteTuning) -> Result:

	if not _can_mutate(state):
		return None

	status = SaveStatus(kind=SaveKind.DELETING_TUNING, target_id=command.tuning_id)

	return _begin_mutation(state, status, "delete_tuning", {"tuning_id": command.tuning_id})
