"""
Keystroke event normalizer.

This module handles:
- Validation of raw, untrusted keystroke records
- Coercion of key codes, sequence numbers and cursor positions
- Timestamp unit disambiguation (ms epoch, s epoch, session-relative ms)
- Rejection reasons for malformed records
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config import ProvenanceConfig, get_default_config

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Closed set of keystroke event kinds."""
    KEY_DOWN = "keydown"
    KEY_UP = "keyup"
    PASTE = "paste"


class RejectionReason(str, Enum):
    """Reasons why a raw record might be rejected."""
    NOT_A_RECORD = "NOT_A_RECORD"
    MISSING_FIELD = "MISSING_FIELD"
    UNKNOWN_EVENT_TYPE = "UNKNOWN_EVENT_TYPE"
    INVALID_SEQUENCE = "INVALID_SEQUENCE"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    INVALID_CHARACTER = "INVALID_CHARACTER"
    INVALID_KEY_CODE = "INVALID_KEY_CODE"


class TimestampUnit(str, Enum):
    """How a submitted timestamp was interpreted."""
    EPOCH_MILLISECONDS = "epoch_ms"
    EPOCH_SECONDS = "epoch_s"
    RELATIVE_MILLISECONDS = "relative_ms"


MAX_KEY_CODE_LENGTH = 20

# Storage column limits (BIGINT / INTEGER)
MAX_SEQUENCE_NUMBER = 2 ** 63 - 1
MAX_CURSOR_POSITION = 2 ** 31 - 1

_EVENT_TYPE_ALIASES = {
    "keydown": EventType.KEY_DOWN,
    "keyup": EventType.KEY_UP,
    "paste": EventType.PASTE,
}


@dataclass(frozen=True)
class CanonicalEvent:
    """A validated keystroke event. Timestamps are seconds."""
    event_type: EventType
    key_code: str
    character: Optional[str]
    timestamp: float
    sequence_number: int
    cursor_position: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "key_code": self.key_code,
            "character": self.character,
            "timestamp": self.timestamp,
            "sequence_number": self.sequence_number,
            "cursor_position": self.cursor_position,
        }


@dataclass
class NormalizedEvent:
    """Result of normalizing one raw record."""
    event: Optional[CanonicalEvent]
    rejected_reasons: List[RejectionReason] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.event is not None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_float(value: Any) -> Optional[float]:
    """Numeric coercion that refuses bools, NaN and infinities."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _is_storable_text(value: str) -> bool:
    """False for NUL characters and lone surrogates, which TEXT columns refuse."""
    if "\x00" in value:
        return False
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _integral(value: Any) -> Any:
    """Turn integer-valued floats into ints so 8.0 reads as "8"."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return value


def resolve_timestamp(
    value: float,
    session_start: Optional[float] = None,
    config: Optional[ProvenanceConfig] = None,
) -> Tuple[float, TimestampUnit]:
    """
    Convert a submitted timestamp to seconds using magnitude heuristics.

    - value > epoch_ms_floor (1e10): milliseconds since the epoch
    - value > epoch_s_floor (1e9): seconds since the epoch
    - otherwise: milliseconds relative to ``session_start`` (or to 0)

    The boundaries are fragile: a relative offset above ~11.5 days in ms
    reads as epoch seconds. That behaviour is kept as-is.

    Args:
        value: Finite numeric timestamp as submitted
        session_start: Anchor for relative timestamps, epoch seconds
        config: Thresholds (defaults if None)

    Returns:
        Tuple of (seconds, unit)
    """
    config = config or get_default_config()
    anchor = session_start or 0.0

    if value > config.epoch_ms_floor:
        return value / 1000.0, TimestampUnit.EPOCH_MILLISECONDS
    if value > config.epoch_s_floor:
        return value, TimestampUnit.EPOCH_SECONDS
    if value <= 0:
        return anchor, TimestampUnit.RELATIVE_MILLISECONDS
    return anchor + value / 1000.0, TimestampUnit.RELATIVE_MILLISECONDS


class EventNormalizer:
    """Validates raw keystroke records and builds canonical events."""

    def __init__(self, config: Optional[ProvenanceConfig] = None):
        self.config = config or get_default_config()

    def coerce_event_type(self, value: Any) -> Optional[EventType]:
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("_", "").replace("-", "")
        return _EVENT_TYPE_ALIASES.get(key)

    def coerce_key_code(self, value: Any) -> Optional[str]:
        if _is_blank(value) or isinstance(value, bool):
            return None
        value = _integral(value)
        if isinstance(value, float) and not math.isfinite(value):
            return None
        if not isinstance(value, (str, int, float)):
            return None
        code = str(value).strip()
        if not _is_storable_text(code):
            return None
        return code[:MAX_KEY_CODE_LENGTH] or None

    def coerce_sequence_number(self, value: Any) -> Optional[int]:
        # Exact integers first; floats lose precision past 2**53
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        else:
            try:
                number = int(value.strip()) if isinstance(value, str) else None
            except ValueError:
                number = None
            if number is None:
                as_float = _to_float(value)
                if as_float is None or as_float < 0:
                    return None
                number = int(as_float)
        if number < 0 or number > MAX_SEQUENCE_NUMBER:
            return None
        return number

    def coerce_cursor_position(self, value: Any) -> int:
        number = _to_float(value)
        if number is None or number < 0:
            return 0
        return int(min(number, MAX_CURSOR_POSITION))

    def coerce_character(self, value: Any) -> Tuple[Optional[str], bool]:
        """
        Keep the observed character or named-key token verbatim.

        Returns:
            Tuple of (character or None, valid flag)
        """
        if value is None:
            return None, True
        if isinstance(value, bool):
            return None, False
        if isinstance(value, (int, float)):
            value = _integral(value)
            if isinstance(value, float):
                return None, False
            value = str(value)
        if not isinstance(value, str):
            return None, False
        if value == "":
            return None, True
        if len(value) > self.config.max_character_length or not _is_storable_text(value):
            return None, False
        return value, True

    def normalize(
        self,
        raw: Any,
        session_start: Optional[float] = None,
    ) -> NormalizedEvent:
        """
        Validate and coerce one raw record.

        Args:
            raw: Untrusted mapping with event_type, key_code, character,
                timestamp, sequence_number, cursor_position
            session_start: Anchor for session-relative timestamps

        Returns:
            NormalizedEvent with the canonical event or rejection reasons
        """
        if not isinstance(raw, Mapping):
            return NormalizedEvent(event=None, rejected_reasons=[RejectionReason.NOT_A_RECORD])

        reasons: List[RejectionReason] = []

        raw_type = raw.get("event_type")
        event_type = None
        if _is_blank(raw_type):
            reasons.append(RejectionReason.MISSING_FIELD)
        else:
            event_type = self.coerce_event_type(raw_type)
            if event_type is None:
                reasons.append(RejectionReason.UNKNOWN_EVENT_TYPE)

        raw_key_code = raw.get("key_code")
        key_code = self.coerce_key_code(raw_key_code)
        if key_code is None:
            if not _is_blank(raw_key_code):
                reasons.append(RejectionReason.INVALID_KEY_CODE)
            elif RejectionReason.MISSING_FIELD not in reasons:
                reasons.append(RejectionReason.MISSING_FIELD)

        raw_sequence = raw.get("sequence_number")
        sequence_number = None
        if _is_blank(raw_sequence):
            if RejectionReason.MISSING_FIELD not in reasons:
                reasons.append(RejectionReason.MISSING_FIELD)
        else:
            sequence_number = self.coerce_sequence_number(raw_sequence)
            if sequence_number is None:
                reasons.append(RejectionReason.INVALID_SEQUENCE)

        raw_timestamp = _to_float(raw.get("timestamp"))
        if raw_timestamp is None:
            reasons.append(RejectionReason.INVALID_TIMESTAMP)

        character, character_ok = self.coerce_character(raw.get("character"))
        if not character_ok:
            reasons.append(RejectionReason.INVALID_CHARACTER)

        if reasons:
            return NormalizedEvent(event=None, rejected_reasons=reasons)

        timestamp, _unit = resolve_timestamp(raw_timestamp, session_start, self.config)

        return NormalizedEvent(
            event=CanonicalEvent(
                event_type=event_type,
                key_code=key_code,
                character=character,
                timestamp=timestamp,
                sequence_number=sequence_number,
                cursor_position=self.coerce_cursor_position(raw.get("cursor_position")),
            )
        )

    def restore(self, row: Mapping[str, Any]) -> CanonicalEvent:
        """
        Rebuild a canonical event from a stored row.

        Stored rows were normalized on the way in, so timestamps are already
        seconds and are not re-interpreted.
        """
        return CanonicalEvent(
            event_type=EventType(row["event_type"]),
            key_code=str(row["key_code"]),
            character=row["character"],
            timestamp=float(row["timestamp"]),
            sequence_number=int(row["sequence_number"]),
            cursor_position=int(row["cursor_position"]),
        )


# Global normalizer instance
normalizer = EventNormalizer()


def normalize(raw: Any, session_start: Optional[float] = None) -> NormalizedEvent:
    """
    Convenience function for event normalization with default thresholds.

    Args:
        raw: Untrusted raw record
        session_start: Anchor for session-relative timestamps

    Returns:
        NormalizedEvent object
    """
    return normalizer.normalize(raw, session_start)
