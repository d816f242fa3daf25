"""
Deterministic text reconstruction from keystroke events.

Replay is a fold over keydown events in sequence order. Each step maps an
immutable ReplayState to the next one, so individual transitions can be
tested in isolation and server/client replays yield identical text.
"""
from functools import reduce
from typing import Iterable, NamedTuple, Optional

from normalizer import CanonicalEvent, EventType

BACKSPACE_KEY_CODE = "8"
TAB_KEY_CODE = "9"
ENTER_KEY_CODE = "13"
SPACE_KEY_CODE = "32"
DELETE_KEY_CODE = "46"

BACKSPACE = "\b"
DELETE = "\x7f"

_NAMED_TOKENS = {
    "space": " ",
    "spacebar": " ",
    "tab": "\t",
    "enter": "\n",
    "return": "\n",
    "newline": "\n",
    "backspace": BACKSPACE,
    "delete": DELETE,
    "del": DELETE,
}

_KEY_CODE_CHARACTERS = {
    BACKSPACE_KEY_CODE: BACKSPACE,
    TAB_KEY_CODE: "\t",
    ENTER_KEY_CODE: "\n",
    SPACE_KEY_CODE: " ",
    DELETE_KEY_CODE: DELETE,
}


class ReplayState(NamedTuple):
    """Text buffer plus the position of the last edit."""
    text: str = ""
    cursor: int = 0


def resolve_character(event: CanonicalEvent) -> Optional[str]:
    """
    Work out what a keydown event types.

    Order: backspace/delete key codes, a single literal character,
    a named token ("space", "enter", ...), then the key code table.

    Returns:
        The literal to insert, BACKSPACE, DELETE, or None for a no-op
    """
    if event.key_code == BACKSPACE_KEY_CODE:
        return BACKSPACE
    if event.key_code == DELETE_KEY_CODE:
        return DELETE

    character = event.character or ""
    if len(character) == 1:
        return "\n" if character == "\r" else character

    token = character.strip().lower()
    if token in _NAMED_TOKENS:
        return _NAMED_TOKENS[token]

    return _KEY_CODE_CHARACTERS.get(event.key_code)


def apply_event(state: ReplayState, event: CanonicalEvent) -> ReplayState:
    """Return the state after one event. Non-keydown events are no-ops."""
    if event.event_type is not EventType.KEY_DOWN:
        return state

    resolved = resolve_character(event)
    if resolved is None:
        return state

    text = state.text
    position = max(0, min(event.cursor_position, len(text)))

    if resolved == BACKSPACE:
        if position == 0:
            return state
        return ReplayState(text[:position - 1] + text[position:], position - 1)

    if resolved == DELETE:
        return ReplayState(text[:position] + text[position + 1:], position)

    return ReplayState(text[:position] + resolved + text[position:], position + len(resolved))


def replay(events: Iterable[CanonicalEvent]) -> ReplayState:
    """Fold events (sorted by sequence number) into a final state."""
    ordered = sorted(events, key=lambda e: e.sequence_number)
    return reduce(apply_event, ordered, ReplayState())


def reconstruct(events: Iterable[CanonicalEvent]) -> str:
    """
    Rebuild document text from keystroke events.

    Args:
        events: Canonical events in any order; a ledger's ordered() output
            works directly

    Returns:
        Reconstructed text
    """
    return replay(events).text
