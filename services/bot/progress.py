from dataclasses import dataclass
from typing import Iterable, Protocol

import discord

from apps.core.game import MAX_MISTAKES, TOTAL_CATEGORIES, GuessHistory, visible_word_difficulties
from services.bot.config import USERNAME_MAX_LENGTH

LAUNCH_ACTIVITY_PREFIX = "launch_activity_"
START_NEW_SESSION_PREFIX = "start_new_session_"
# Stands in for the session id until the card's own message id is known
PENDING_SESSION_ID = "pending"

PLAY_LABEL = "Play now!"
COLOR_EMOJIS = {0: "🟨", 1: "🟩", 2: "🟦", 3: "🟪"}
MISS_EMOJI = "⬜"
CARD_COLOR = 0x5865F2
SOLVED_COLOR = 0x57F287


class CardPlayer(Protocol):
    username: str
    guess_history: GuessHistory


@dataclass
class SessionCard:
    content: str
    embed: discord.Embed
    view: discord.ui.View


def display_name(name: str) -> str:
    if len(name) > USERNAME_MAX_LENGTH:
        return name[: USERNAME_MAX_LENGTH - 1] + "…"
    return name


def game_title(puzzle_number: int | None) -> str:
    if puzzle_number is None:
        return "Synapse"
    return f"Synapse #{puzzle_number}"


def format_player_message(players: list[CardPlayer], puzzle_number: int | None, complete: bool = False) -> str:
    title = game_title(puzzle_number)
    if len(players) == 0:
        return f"Click **Play** to join today's {title}"

    if complete:
        verb = "was playing" if len(players) == 1 else "were playing"
    else:
        verb = "is playing" if len(players) == 1 else "are playing"

    names = [f"**{player.username}**" for player in players]
    if len(names) == 1:
        who = names[0]
    elif len(names) == 2:
        who = f"{names[0]} and {names[1]}"
    else:
        who = f"{', '.join(names[:-1])}, and {names[-1]}"

    return f"{who} {verb} {title}"


def format_guess_grid(history: GuessHistory) -> str:
    """One emoji row per guess.

    Missed guesses stay grey until the player has finished, then show which
    category each word really belonged to.
    """
    complete = history.is_complete
    rows = []
    for guess in history:
        if guess.correct and guess.difficulty is not None:
            rows.append(COLOR_EMOJIS[guess.difficulty] * 4)
            continue

        revealed = visible_word_difficulties(guess, complete)
        if revealed is None:
            rows.append(MISS_EMOJI * 4)
        else:
            rows.append("".join(COLOR_EMOJIS.get(d, MISS_EMOJI) for d in revealed))

    if len(rows) == 0:
        return "No guesses yet"
    return "\n".join(rows)


def player_status(history: GuessHistory) -> str:
    if history.solved_count == TOTAL_CATEGORIES:
        return "✅"
    if history.mistake_count >= MAX_MISTAKES:
        return "❌"
    return "🧩"


def player_field(player: CardPlayer) -> tuple[str, str]:
    history = player.guess_history
    name = f"\u200b\n{player_status(history)} {display_name(player.username)}"
    score = f"{history.solved_count}/{TOTAL_CATEGORIES} · {history.mistake_count} mistakes"
    value = f"{format_guess_grid(history)}\n{score}"
    return name, value


def launch_view(session_id: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label=PLAY_LABEL,
            style=discord.ButtonStyle.primary,
            custom_id=f"{LAUNCH_ACTIVITY_PREFIX}{session_id}",
        )
    )
    return view


def new_session_view(channel_id: str) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label=PLAY_LABEL,
            style=discord.ButtonStyle.primary,
            custom_id=f"{START_NEW_SESSION_PREFIX}{channel_id}",
        )
    )
    return view


def build_card(
    players: Iterable[CardPlayer],
    puzzle_number: int | None,
    session_id: str,
    complete: bool = False,
) -> SessionCard:
    players = list(players)
    embed = discord.Embed(title=f"🧠 {game_title(puzzle_number)}", color=SOLVED_COLOR if complete else CARD_COLOR)
    for player in players:
        name, value = player_field(player)
        embed.add_field(name=name, value=value, inline=True)

    if len(embed.fields) == 0:
        embed.description = "Nobody has joined yet, be the first!"

    return SessionCard(
        content=format_player_message(players, puzzle_number, complete),
        embed=embed,
        view=launch_view(session_id),
    )
