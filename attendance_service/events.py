"""
Event sending module.

Persists attendance events to a remote attendance service over HTTP.
The remote service exposes GET/POST /attendance.
"""

import requests
from datetime import datetime
from typing import Any, List

from .errors import InvalidInput, StorageFailure
from .ledger import AttendanceLedger
from .logging_config import get_logger
from .models import AttendanceRecord, format_timestamp, parse_timestamp

logger = get_logger(__name__)

REQUEST_TIMEOUT = 5


class RemoteLedger(AttendanceLedger):
    """
    Ledger that delegates storage to a remote attendance service.
    
    The server assigns ids and serializes its own writes.
    """
    
    def __init__(self, backend_url: str, timeout: float = REQUEST_TIMEOUT):
        """
        Initialize remote ledger.
        
        Args:
            backend_url: Base URL of the attendance service
            timeout: Request timeout in seconds
        """
        super().__init__()
        self.url = f"{backend_url.rstrip('/')}/attendance"
        self.timeout = timeout
    
    def append(self, name: str, timestamp: Any) -> AttendanceRecord:
        """
        Send event to the remote service.
        
        Raises:
            InvalidInput: If name or timestamp are malformed
            StorageFailure: If the request fails or is rejected
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput('Name must be a non-empty string')
        
        moment: datetime = parse_timestamp(timestamp)
        payload = {'name': name.strip(), 'timestamp': format_timestamp(moment)}
        
        logger.info(f'📤 Sending attendance for {payload["name"]} to {self.url}')
        
        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise StorageFailure(f'Timeout sending attendance to {self.url}') from e
        except requests.exceptions.RequestException as e:
            raise StorageFailure(f'Error sending attendance to {self.url}: {e}') from e
        
        if not response.ok:
            raise StorageFailure(
                f'Failed to send attendance: {response.status_code} {response.text}'
            )
        
        try:
            record = AttendanceRecord.from_dict(response.json())
        except (ValueError, InvalidInput) as e:
            raise StorageFailure(f'Malformed response from {self.url}: {e}') from e
        
        logger.info(f'✅ Attendance stored remotely ({record.id})')
        return record
    
    def list(self) -> List[AttendanceRecord]:
        """
        Fetch all records from the remote service, most recent first.
        
        Raises:
            StorageFailure: If the request fails or returns bad data
        """
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            items = response.json()
        except requests.exceptions.RequestException as e:
            raise StorageFailure(f'Failed to fetch attendance from {self.url}: {e}') from e
        except ValueError as e:
            raise StorageFailure(f'Malformed response from {self.url}: {e}') from e
        
        if not isinstance(items, list):
            raise StorageFailure(f'Expected a list from {self.url}')
        
        try:
            records = [AttendanceRecord.from_dict(item) for item in items]
        except InvalidInput as e:
            raise StorageFailure(f'Malformed record from {self.url}: {e}') from e
        
        return sorted(records, key=lambda r: r.timestamp, reverse=True)
