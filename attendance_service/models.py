"""
Data model for recognition and attendance.

Narrow value types shared between the registry, matcher, gate, ledger
and pipeline. None of them depend on a detection library's object shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

import numpy as np

from .errors import InvalidInput

UNKNOWN_LABEL = 'Unknown'


def freeze_embedding(embedding: Any) -> np.ndarray:
    """
    Copy embedding into a read-only 1-D float32 array.
    
    Raises:
        InvalidInput: If the value is not a flat numeric vector
    """
    try:
        vector = np.array(embedding, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f'Embedding is not numeric: {e}') from e
    
    if vector.ndim != 1 or vector.size == 0:
        raise InvalidInput(f'Embedding must be a non-empty vector, got shape {vector.shape}')
    if not np.all(np.isfinite(vector)):
        raise InvalidInput('Embedding contains NaN or infinite values')
    
    vector.setflags(write=False)
    return vector


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 string (or datetime) into an aware UTC datetime.
    
    Naive values are taken as UTC. A trailing 'Z' is accepted.
    
    Raises:
        InvalidInput: If value is not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidInput(f'Invalid ISO-8601 timestamp: {value!r}') from e
    else:
        raise InvalidInput(f'Invalid timestamp: {value!r}')
    
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format datetime as ISO-8601 UTC with milliseconds and 'Z' suffix."""
    iso = value.astimezone(timezone.utc).isoformat(timespec='milliseconds')
    return iso.replace('+00:00', 'Z')


def locale_date(value: datetime) -> str:
    """Server-locale date string for display."""
    return value.astimezone().strftime('%x')


def locale_time(value: datetime) -> str:
    """Server-locale time string for display."""
    return value.astimezone().strftime('%X')


@dataclass(frozen=True, eq=False)
class Identity:
    """A named reference embedding."""
    
    name: str
    embedding: np.ndarray


@dataclass(frozen=True, eq=False)
class DetectionEvent:
    """One detected face handed over by the external detector."""
    
    embedding: np.ndarray
    observed_at: datetime


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of classifying one embedding.
    
    distance is +inf when there was nothing to compare against.
    """
    
    label: str
    distance: float
    
    @property
    def confidence(self) -> float:
        # Display only, not a probability
        return 1.0 - self.distance
    
    @property
    def is_known(self) -> bool:
        return self.label != UNKNOWN_LABEL


@dataclass(frozen=True)
class AttendanceRecord:
    """
    An accepted attendance event as stored by a ledger.
    
    date and time are display strings derived at write time.
    """
    
    id: str
    name: str
    timestamp: datetime
    date: str = field(default='')
    time: str = field(default='')
    
    def to_dict(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'name': self.name,
            'timestamp': format_timestamp(self.timestamp),
            'date': self.date,
            'time': self.time,
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttendanceRecord':
        """
        Build a record from its stored/wire representation.
        
        Raises:
            InvalidInput: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise InvalidInput('Record must be an object')
        
        record_id = data.get('id') or data.get('_id')
        name = data.get('name')
        if not record_id or not isinstance(name, str) or not name.strip():
            raise InvalidInput(f'Record is missing id or name: {data!r}')
        
        timestamp = parse_timestamp(data.get('timestamp'))
        return cls(
            id=str(record_id),
            name=name,
            timestamp=timestamp,
            date=data.get('date') or locale_date(timestamp),
            time=data.get('time') or locale_time(timestamp),
        )
