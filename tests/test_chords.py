import pytest

import tabloop.chords
import tabloop.errors


STANDARD = tabloop.chords.tuning_pitch_classes("E A D G B e")


def test_lowercase_note_names_match_uppercase () -> None:

	"""The high e string label resolves to the same pitch class as E."""

	assert tabloop.chords.note_name_to_pc("e") == tabloop.chords.note_name_to_pc("E") == 4


def test_flats_share_index_with_sharps () -> None:

	"""Enharmonic aliases resolve to one pitch class."""

	assert tabloop.chords.note_name_to_pc("Bb") == tabloop.chords.note_name_to_pc("A#") == 10
	assert tabloop.chords.note_name_to_pc("bb") == 10


def test_unknown_note_name_is_none () -> None:

	assert tabloop.chords.note_name_to_pc("H") is None
	assert tabloop.chords.note_name_to_pc("") is None


def test_tuning_pitch_classes_standard () -> None:

	assert STANDARD == [4, 9, 2, 7, 11, 4]


def test_tuning_with_unknown_or_missing_notes () -> None:

	"""Bad or missing names only silence their own strings."""

	assert tabloop.chords.tuning_pitch_classes("E A Q G") == [4, 9, None, 7, None, None]


def test_fret_to_pitch_classes_g_major () -> None:

	"""Each string adds its fret to the open pitch class, modulo 12."""

	assert tabloop.chords.fret_to_pitch_classes("320003", STANDARD) == (7, 11, 2, 7, 11, 7)


def test_muted_strings_are_skipped () -> None:

	assert tabloop.chords.fret_to_pitch_classes("x02210", STANDARD) == (9, 4, 9, 0, 4)
	assert tabloop.chords.fret_to_pitch_classes("XXXXXX", STANDARD) == ()


def test_malformed_tokens_drop_single_strings () -> None:

	"""A token that is not a fret digit silences only that string."""

	assert tabloop.chords.fret_to_pitch_classes("3?0003", STANDARD) == (7, 2, 7, 11, 7)


def test_short_tab_treats_missing_strings_as_muted () -> None:

	assert tabloop.chords.fret_to_pitch_classes("32", STANDARD) == (7, 11)


@pytest.mark.parametrize("tab", ["320003", "x02210", "xx0232", "999999", "a?b!x-", ""])
def test_fret_to_pitch_classes_bounds (tab: str) -> None:

	"""Pure function: at most six results, all valid pitch classes."""

	result = tabloop.chords.fret_to_pitch_classes(tab, STANDARD)

	assert len(result) <= 6
	assert all(0 <= pc <= 11 for pc in result)
	assert result == tabloop.chords.fret_to_pitch_classes(tab, STANDARD)


def test_note_name_to_midi () -> None:

	assert tabloop.chords.note_name_to_midi("C4") == 60
	assert tabloop.chords.note_name_to_midi("A4") == 69
	assert tabloop.chords.note_name_to_midi("Bb3") == 58
	assert tabloop.chords.note_name_to_midi("C-1") == 0


def test_note_name_to_midi_rejects_garbage () -> None:

	assert tabloop.chords.note_name_to_midi("C") is None
	assert tabloop.chords.note_name_to_midi("X4") is None
	assert tabloop.chords.note_name_to_midi("A9") is None


def test_validate_tab_length () -> None:

	assert tabloop.chords.validate_tab("x32010") == "x32010"

	with pytest.raises(tabloop.errors.ValidationError):
		tabloop.chords.validate_tab("32000")


def test_validate_tuning_notes () -> None:

	"""Six known names are accepted (and whitespace normalised); anything else is rejected."""

	assert tabloop.chords.validate_tuning_notes("D  A D G B e") == "D A D G B e"

	with pytest.raises(tabloop.errors.ValidationError):
		tabloop.chords.validate_tuning_notes("E A D G B")

	with pytest.raises(tabloop.errors.ValidationError, match="Q"):
		tabloop.chords.validate_tuning_notes("E A D Q B e")
