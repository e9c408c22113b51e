from datetime import date

import pytest

from apps.core.game import (
    Guess,
    GuessHistory,
    MalformedGuessError,
    make_user_session_id,
    parse_user_session_id,
    visible_word_difficulties,
)


def guess(correct: bool, difficulty: int | None = None, words: list[str] | None = None, **extra) -> dict:
    return {
        "words": words or ["APPLE", "BANANA", "GRAPE", "KIWI"],
        "correct": correct,
        "difficulty": difficulty,
        **extra,
    }


def miss(n: int) -> dict:
    return guess(False, words=[f"A{n}", f"B{n}", f"C{n}", f"D{n}"], wordDifficulties=[0, 1, 2, 3])


def test_guess_keeps_what_was_submitted():
    parsed = Guess.from_dict(guess(True, 0, timestamp=1700000000000.0))

    assert parsed.words == ("APPLE", "BANANA", "GRAPE", "KIWI")
    assert parsed.correct is True
    assert parsed.difficulty == 0
    assert parsed.timestamp == 1700000000000
    assert parsed.to_dict()["words"] == ["APPLE", "BANANA", "GRAPE", "KIWI"]


@pytest.mark.parametrize(
    "raw",
    [
        "not a guess",
        guess(True, 0, words=["APPLE", "BANANA", "GRAPE"]),
        guess(True, 0, words=["APPLE", "APPLE", "GRAPE", "KIWI"]),
        guess("yes", 0),
        guess(True, 4),
        guess(True, True),
        guess(False, wordDifficulties=[0, 1]),
        guess(False, timestamp="yesterday"),
    ],
)
def test_malformed_guesses_are_rejected(raw):
    with pytest.raises(MalformedGuessError):
        Guess.from_dict(raw)


def test_missing_history_is_empty():
    assert len(GuessHistory.from_list(None)) == 0

    with pytest.raises(MalformedGuessError):
        GuessHistory.from_list({"guesses": []})


def test_solved_and_unsolved_always_add_up_to_four():
    raw = []
    for index, next_guess in enumerate([guess(True, 0), miss(1), guess(True, 0), guess(True, 3), miss(2)]):
        raw.append(next_guess)
        history = GuessHistory.from_list(raw)
        assert history.solved_count + history.unsolved_count == 4, f"after guess {index}"


def test_replayed_correct_guess_only_solves_one_category():
    history = GuessHistory.from_list([guess(True, 0), guess(True, 0), guess(True, 0), guess(True, 0)])

    assert history.correct_count == 4
    assert history.solved_count == 1
    assert history.is_complete is False


def test_complete_after_four_categories():
    words = [[f"{c}{i}" for i in range(4)] for c in "WXYZ"]
    history = GuessHistory.from_list([guess(True, d, words=words[d]) for d in range(4)])

    assert history.is_complete is True


def test_complete_after_four_mistakes_and_stays_complete():
    raw = [miss(n) for n in range(4)]
    assert GuessHistory.from_list(raw).is_complete is True

    raw.append(guess(True, 1))
    raw.append(miss(5))
    assert GuessHistory.from_list(raw).is_complete is True


def test_word_difficulties_hidden_until_player_is_done():
    missed = Guess.from_dict(miss(1))

    assert visible_word_difficulties(missed, player_complete=False) is None
    assert visible_word_difficulties(missed, player_complete=True) == (0, 1, 2, 3)
    assert visible_word_difficulties(Guess.from_dict(guess(True, 2)), player_complete=True) is None


def test_user_session_id():
    user_session_id = make_user_session_id("guild", "user", date(2024, 3, 1))

    assert user_session_id == "guild_user_2024-03-01"
    assert parse_user_session_id(user_session_id) == ("guild", "user", date(2024, 3, 1))
    assert parse_user_session_id("guild_user_notadate") is None
    assert parse_user_session_id("nonsense") is None
