"""
Attendance ledger module.

Durable, append-only storage of accepted attendance events.
Every read-modify-write of a backing store runs under one mutex, so
concurrent appends are never lost.
"""

import itertools
import json
import os
import tempfile
import threading
from datetime import datetime
from typing import Any, Dict, List

from .errors import InvalidInput, StorageFailure
from .logging_config import get_logger
from .models import AttendanceRecord, locale_date, locale_time, parse_timestamp

logger = get_logger(__name__)


class AttendanceLedger:
    """
    Base ledger: id generation and ordering shared by all backends.
    
    Subclasses implement `_store` and `_load`; both are only called with
    `self._lock` held.
    """
    
    def __init__(self):
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
    
    def _make_record(self, name: str, timestamp: datetime) -> AttendanceRecord:
        epoch_ms = int(timestamp.timestamp() * 1000)
        return AttendanceRecord(
            id=f'{name}-{epoch_ms}-{next(self._sequence)}',
            name=name,
            timestamp=timestamp,
            date=locale_date(timestamp),
            time=locale_time(timestamp),
        )
    
    def append(self, name: str, timestamp: Any) -> AttendanceRecord:
        """
        Durably append one record.
        
        Args:
            name: Identity name
            timestamp: datetime or ISO-8601 string
        
        Returns:
            The stored record, including its generated id
        
        Raises:
            InvalidInput: If name or timestamp are malformed
            StorageFailure: If the backing store cannot be written
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput('Name must be a non-empty string')
        
        moment = parse_timestamp(timestamp)
        
        with self._lock:
            record = self._make_record(name.strip(), moment)
            record = self._store(record)
        
        logger.info(f'📝 Recorded attendance for {record.name} ({record.id})')
        return record
    
    def list(self) -> List[AttendanceRecord]:
        """
        All records, most recent first.
        
        Records with equal timestamps keep "last appended first" order.
        
        Raises:
            StorageFailure: If the backing store cannot be read
        """
        with self._lock:
            records = self._load()
        return sorted(records, key=lambda r: r.timestamp, reverse=True)
    
    def __len__(self) -> int:
        return len(self.list())
    
    def _store(self, record: AttendanceRecord) -> AttendanceRecord:
        raise NotImplementedError
    
    def _load(self) -> List[AttendanceRecord]:
        raise NotImplementedError


class MemoryLedger(AttendanceLedger):
    """Process-local ledger. Lost on restart."""
    
    def __init__(self):
        super().__init__()
        # Newest first
        self._records: List[AttendanceRecord] = []
    
    def _store(self, record: AttendanceRecord) -> AttendanceRecord:
        self._records.insert(0, record)
        return record
    
    def _load(self) -> List[AttendanceRecord]:
        return list(self._records)


class JsonFileLedger(AttendanceLedger):
    """
    Ledger backed by a JSON array file, newest record first.
    
    Writes go to a temp file in the same directory and are renamed over
    the ledger file, so a crash mid-write never leaves a truncated file.
    The mutex only covers threads of this process.
    """
    
    def __init__(self, path: str):
        """
        Initialize file ledger.
        
        Args:
            path: Path to JSON file (created on first write)
        """
        super().__init__()
        self.path = os.path.abspath(path)
    
    def _read_raw(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []
        
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageFailure(f'Failed to read ledger {self.path}: {e}') from e
        
        if not isinstance(data, list):
            raise StorageFailure(f'Ledger {self.path} does not contain a JSON array')
        return data
    
    def _write_raw(self, data: List[Dict[str, Any]]) -> None:
        directory = os.path.dirname(self.path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.ledger-', suffix='.json', dir=directory)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageFailure(f'Failed to write ledger {self.path}: {e}') from e
    
    def _store(self, record: AttendanceRecord) -> AttendanceRecord:
        data = self._read_raw()
        
        existing_ids = {item.get('id') for item in data if isinstance(item, dict)}
        while record.id in existing_ids:
            # Sequence restarts with the process; skip ids already on disk
            record = self._make_record(record.name, record.timestamp)
        
        data.insert(0, record.to_dict())
        self._write_raw(data)
        return record
    
    def _load(self) -> List[AttendanceRecord]:
        records = []
        for item in self._read_raw():
            try:
                records.append(AttendanceRecord.from_dict(item))
            except InvalidInput as e:
                logger.warning(f'Skipping malformed ledger entry: {e}')
        return records
