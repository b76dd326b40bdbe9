"""
Attendance Service - Face Recognition Attendance Ledger

A modular Python service that turns face-embedding detections into a
deduplicated attendance ledger. Provides an HTTP API for reading and
writing attendance records.
"""

__version__ = "1.0.0"
__author__ = "Attendance Service Team"
