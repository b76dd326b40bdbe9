"""
Configuration module for Attendance Service.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization.
"""

import math
import os
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class CaptureProfile:
    """
    Camera constraints for a device class.
    
    Only the capture layer reads this; recognition never does.
    """
    
    resolution: Tuple[int, int]
    frame_rate: int
    facing_mode: str


DESKTOP_PROFILE = CaptureProfile(resolution=(1280, 720), frame_rate=30, facing_mode='user')
MOBILE_PROFILE = CaptureProfile(resolution=(640, 480), frame_rate=15, facing_mode='environment')

_PROFILES = {
    'desktop': DESKTOP_PROFILE,
    'mobile': MOBILE_PROFILE,
}


@dataclass(frozen=True)
class ModelPreset:
    """Embedding length and default Euclidean match threshold of a model."""
    
    embedding_dim: int
    match_threshold: float


def cosine_to_euclidean(similarity: float) -> float:
    """Euclidean distance between unit vectors with the given cosine similarity."""
    return math.sqrt(2.0 * (1.0 - similarity))


# buffalo_l emits unit-length 512-d vectors; 0.38 cosine is its usual single-frame cut-off.
# face-api.js descriptors are 128-d and compared at 0.5 Euclidean.
MODEL_PRESETS = {
    'buffalo_l': ModelPreset(embedding_dim=512, match_threshold=cosine_to_euclidean(0.38)),
    'face-api': ModelPreset(embedding_dim=128, match_threshold=0.5),
}

# Detection tick per device class, in milliseconds
_DEFAULT_INTERVALS_MS = {
    'desktop': 300,
    'mobile': 500,
}


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for Attendance Service.
    
    Recognition:
        embedding_model: Model preset supplying the defaults below
        match_threshold: Maximum Euclidean distance for a match (lower = stricter)
        embedding_dim: Dimensionality of embeddings produced by the model
    
    Attendance:
        cooldown_seconds: Minimum time between two accepted records per name
        detection_interval_ms: Period of the detection loop
        max_face_workers: Parallel classifications per frame
    
    Storage:
        ledger_file: Path to JSON attendance file
        backend_url: Remote attendance service (overrides ledger_file if set)
        registry_file: Path to registered identities cache
    
    HTTP API:
        api_host: Bind address
        api_port: Bind port
    
    Capture:
        camera_source: Camera index or stream URL
        device_profile: 'desktop' or 'mobile'
        capture: Capture constraints derived from device_profile
        max_read_failures: Consecutive failed reads before the camera counts as lost
    
    System:
        session_id: Identifier used in log records
        debug_mode: Enable debug logging
    """
    
    # Recognition
    embedding_model: str
    match_threshold: float
    embedding_dim: int
    
    # Attendance
    cooldown_seconds: float
    detection_interval_ms: int
    max_face_workers: int
    
    # Storage
    ledger_file: str
    backend_url: Optional[str]
    registry_file: str
    
    # HTTP API
    api_host: str
    api_port: int
    
    # Capture
    camera_source: str
    device_profile: str
    capture: CaptureProfile
    max_read_failures: int
    
    # System
    session_id: str
    debug_mode: bool


def load_config() -> Config:
    """
    Load configuration from environment variables.
    
    Returns:
        Config: Immutable configuration object
    
    Raises:
        ValueError: If DEVICE_PROFILE or EMBEDDING_MODEL is unknown
    """
    device_profile = os.getenv('DEVICE_PROFILE', 'desktop').lower()
    if device_profile not in _PROFILES:
        raise ValueError(f'Unknown DEVICE_PROFILE: {device_profile}')
    
    embedding_model = os.getenv('EMBEDDING_MODEL', 'buffalo_l')
    if embedding_model not in MODEL_PRESETS:
        raise ValueError(f'Unknown EMBEDDING_MODEL: {embedding_model}')
    preset = MODEL_PRESETS[embedding_model]
    
    return Config(
        # Recognition
        embedding_model=embedding_model,
        match_threshold=float(os.getenv('MATCH_THRESHOLD', str(preset.match_threshold))),
        embedding_dim=int(os.getenv('EMBEDDING_DIM', str(preset.embedding_dim))),
        
        # Attendance
        cooldown_seconds=float(os.getenv('COOLDOWN_SECONDS', '300')),
        detection_interval_ms=int(os.getenv(
            'DETECTION_INTERVAL_MS', str(_DEFAULT_INTERVALS_MS[device_profile])
        )),
        max_face_workers=int(os.getenv('MAX_FACE_WORKERS', '4')),
        
        # Storage
        ledger_file=os.getenv('LEDGER_FILE', 'attendance.json'),
        backend_url=os.getenv('BACKEND_URL') or None,
        registry_file=os.getenv('REGISTRY_FILE', 'registry_cache.pkl'),
        
        # HTTP API
        api_host=os.getenv('API_HOST', '0.0.0.0'),
        api_port=int(os.getenv('API_PORT', '5000')),
        
        # Capture
        camera_source=os.getenv('CAMERA_SOURCE', '0'),
        device_profile=device_profile,
        capture=_PROFILES[device_profile],
        max_read_failures=int(os.getenv('MAX_READ_FAILURES', '10')),
        
        # System
        session_id=os.getenv('SESSION_ID', 'main'),
        debug_mode=os.getenv('DEBUG', 'false').lower() == 'true',
    )
