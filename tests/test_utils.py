import pytest

from utils import (
    MISSING_MARKER,
    DiffSegment,
    SegmentKind,
    align,
    edit_distance,
    format_elapsed,
    has_error,
    is_match,
    normalize,
    similarity,
    split_sentences,
)

C, E, M = SegmentKind.CORRECT, SegmentKind.ERROR, SegmentKind.MISSING


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("“a”", '"a"'),
        ("„a‟", '"a"'),
        ("«Hola»", '"Hola"'),
        ("″x‶", '"x"'),
        ("it’s", "it's"),
        ("‘a’ ‚b‛ ′c‵", "'a' 'b' 'c'"),
        ("  spaced out  ", "spaced out"),
        ("zero​width", "zerowidth"),
        ("​  lead", "lead"),
        ("", ""),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["“a”", "  ​ x ​ ", "plain", "« ’ »", "\n\ttabs\t\n"],
)
def test_normalize_is_idempotent(raw):
    once = normalize(raw)
    assert normalize(once) == once


def test_normalize_keeps_inner_whitespace():
    assert normalize("a  b\tc") == "a  b\tc"


def test_split_appends_final_period():
    assert split_sentences("Hola mundo. Adiós") == ["Hola mundo.", "Adiós."]


@pytest.mark.parametrize("raw", ["", "   ", "\n\t", "​"])
def test_split_empty_input(raw):
    assert split_sentences(raw) == []


def test_split_keeps_question_and_exclamation():
    text = "¿Qué tal? ¡Bien! Gracias."
    assert split_sentences(text) == ["¿Qué tal?", "¡Bien!", "Gracias."]


def test_split_after_closing_quote():
    text = 'Dijo "hola." Luego se fue.'
    assert split_sentences(text) == ['Dijo "hola."', "Luego se fue."]


def test_split_normalizes_curly_quotes_first():
    text = "“Hola.” Adiós."
    assert split_sentences(text) == ['"Hola."', "Adiós."]


def test_split_closing_quote_counts_as_terminated():
    assert split_sentences('Ella gritó "¡Ya!"') == ['Ella gritó "¡Ya!"']


def test_split_ignores_inner_periods():
    assert split_sentences("Version 2.0 is out. Try it") == [
        "Version 2.0 is out.",
        "Try it.",
    ]


def test_split_ellipsis_and_newlines():
    assert split_sentences("Wait... what?\n\nUno.\nDos.") == [
        "Wait...",
        "what?",
        "Uno.",
        "Dos.",
    ]


def test_match_tolerates_missing_final_period():
    assert is_match("Hola mundo", "Hola mundo.")
    assert is_match("Hola mundo.", "Hola mundo.")


def test_match_is_case_sensitive():
    assert not is_match("hola mundo.", "Hola mundo.")


def test_match_only_forgives_one_period():
    assert not is_match("Hola mundo..", "Hola mundo.")
    assert not is_match("Hola mundo", "Hola mundo?")


def test_match_has_no_punctuation_tolerance():
    assert not is_match("Hola, mundo.", "Hola mundo.")
    assert not is_match("Adios.", "Adiós.")


def test_match_normalizes_only_the_canonical_side():
    assert is_match('Dijo "sí".', "Dijo “sí”.")
    assert not is_match("Dijo “sí”.", 'Dijo "sí".')


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("kitten", "sitting", 3),
        ("", "", 0),
        ("", "abc", 3),
        ("abc", "", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ],
)
def test_edit_distance(a, b, expected):
    assert edit_distance(a, b) == expected


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ("abc", "abc", 100),
        ("abc", "abd", 67),
        ("kitten", "sitting", 57),
        ("abcdefgh", "abcdeXYZ", 63),
        ("abcd", "abXY", 50),
        ("", "abc", 0),
        ("xyz", "abc", 0),
        ("“a”", '"a"', 100),
    ],
)
def test_similarity(a, b, expected):
    assert similarity(a, b) == expected


def test_align_identical_text_is_one_correct_segment():
    assert align("Hola mundo.", "Hola mundo.") == [DiffSegment("Hola mundo.", C)]


def test_align_substitution():
    assert align("abc", "abd") == [DiffSegment("ab", C), DiffSegment("c", E)]


def test_align_missing_characters_are_masked():
    segments = align("ab", "abc")
    assert segments == [DiffSegment("ab", C), DiffSegment(MISSING_MARKER, M)]
    assert "c" not in "".join(s.text for s in segments)


def test_align_extra_character():
    assert align("abxc", "abc") == [
        DiffSegment("ab", C),
        DiffSegment("x", E),
        DiffSegment("c", C),
    ]


def test_align_against_empty_sides():
    assert align("", "abc") == [DiffSegment("???", M)]
    assert align("abc", "") == [DiffSegment("abc", E)]


def test_align_prefers_substitution_on_ties():
    # "ab" -> "ba" can be two substitutions or delete+insert; substitution wins
    assert align("ab", "ba") == [DiffSegment("ab", E)]


def test_align_merges_adjacent_kinds():
    segments = align("El sol brila.", "El sol brilla.")
    kinds = [s.kind for s in segments]
    assert all(a is not b for a, b in zip(kinds, kinds[1:]))
    assert has_error(segments)
    assert segments == [
        DiffSegment("El sol bri", C),
        DiffSegment(MISSING_MARKER, M),
        DiffSegment("la.", C),
    ]


def test_align_text_covers_every_position():
    user, correct = "La luna canta", "La luna calla."
    segments = align(user, correct)
    assert len("".join(s.text for s in segments)) >= len(user)
    # everything except the masked gaps is what the user typed, in order
    assert "".join(s.text for s in segments if s.kind is not M) == user


def test_has_error():
    assert not has_error([DiffSegment("abc", C)])
    assert has_error([DiffSegment("ab", C), DiffSegment("?", M)])
    assert not has_error([])


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "00:00"), (59, "00:59"), (61, "01:01"), (3600, "60:00"), (6125, "102:05")],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected
