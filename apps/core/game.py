from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator, Optional

TOTAL_CATEGORIES = 4
MAX_MISTAKES = 4
WORDS_PER_GUESS = 4
DIFFICULTIES = range(4)


class MalformedGuessError(ValueError):
    pass


@dataclass(frozen=True)
class Guess:
    words: tuple[str, ...]
    correct: bool
    difficulty: Optional[int] = None
    # Category difficulty of each word, only shown once the guessing player is done
    word_difficulties: Optional[tuple[Optional[int], ...]] = None
    timestamp: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "Guess":
        if not isinstance(raw, dict):
            raise MalformedGuessError(f"Expected guess to be an object, got {type(raw).__name__}")

        words = raw.get("words")
        if not isinstance(words, list) or not all(isinstance(word, str) for word in words):
            raise MalformedGuessError("Guess words must be a list of strings")
        if len(words) != WORDS_PER_GUESS or len(set(words)) != WORDS_PER_GUESS:
            raise MalformedGuessError(f"Guess must contain exactly {WORDS_PER_GUESS} distinct words, got {words}")

        correct = raw.get("correct")
        if not isinstance(correct, bool):
            raise MalformedGuessError("Guess correct flag must be a boolean")

        word_difficulties = raw.get("wordDifficulties")
        if word_difficulties is not None:
            if not isinstance(word_difficulties, list) or len(word_difficulties) != WORDS_PER_GUESS:
                raise MalformedGuessError("Guess wordDifficulties must be a list with one entry per word")
            word_difficulties = tuple(_parse_difficulty(d) for d in word_difficulties)

        timestamp = raw.get("timestamp")
        if timestamp is not None:
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise MalformedGuessError("Guess timestamp must be a number")
            timestamp = int(timestamp)

        return cls(
            words=tuple(words),
            correct=correct,
            difficulty=_parse_difficulty(raw.get("difficulty")),
            word_difficulties=word_difficulties,
            timestamp=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "words": list(self.words),
            "correct": self.correct,
            "difficulty": self.difficulty,
            "wordDifficulties": None if self.word_difficulties is None else list(self.word_difficulties),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class GuessHistory:
    """Ordered guesses submitted by one player, as sent by their client."""

    guesses: tuple[Guess, ...] = ()

    @classmethod
    def from_list(cls, raw: Any) -> "GuessHistory":
        if raw is None:
            return cls()
        if not isinstance(raw, list):
            raise MalformedGuessError(f"Expected guess history to be a list, got {type(raw).__name__}")
        return cls(tuple(Guess.from_dict(guess) for guess in raw))

    def to_list(self) -> list[dict[str, Any]]:
        return [guess.to_dict() for guess in self.guesses]

    def __len__(self) -> int:
        return len(self.guesses)

    def __iter__(self) -> Iterator[Guess]:
        return iter(self.guesses)

    def __getitem__(self, index: int) -> Guess:
        return self.guesses[index]

    @property
    def correct_count(self) -> int:
        return sum(1 for guess in self.guesses if guess.correct)

    @property
    def mistake_count(self) -> int:
        return sum(1 for guess in self.guesses if not guess.correct)

    @property
    def solved_count(self) -> int:
        # Replayed correct guesses for the same category only count once
        solved = {
            guess.difficulty if guess.difficulty is not None else frozenset(guess.words)
            for guess in self.guesses
            if guess.correct
        }
        return min(len(solved), TOTAL_CATEGORIES)

    @property
    def unsolved_count(self) -> int:
        return TOTAL_CATEGORIES - self.solved_count

    @property
    def is_complete(self) -> bool:
        return self.solved_count == TOTAL_CATEGORIES or self.mistake_count >= MAX_MISTAKES


def visible_word_difficulties(guess: Guess, player_complete: bool) -> Optional[tuple[Optional[int], ...]]:
    if guess.correct or not player_complete:
        return None
    return guess.word_difficulties


def make_user_session_id(guild_id: str, user_id: str, game_date: date) -> str:
    return f"{guild_id}_{user_id}_{game_date.isoformat()}"


def parse_user_session_id(user_session_id: str) -> Optional[tuple[str, str, date]]:
    parts = user_session_id.rsplit("_", 2)
    if len(parts) != 3 or not all(parts):
        return None

    guild_id, user_id, raw_date = parts
    try:
        return guild_id, user_id, date.fromisoformat(raw_date)
    except ValueError:
        return None


def _parse_difficulty(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value not in DIFFICULTIES:
        raise MalformedGuessError(f"Difficulty must be an integer between 0 and 3, got {value!r}")
    return value
