"""
Registry cache module.

Persists registered identities so they survive a restart.
"""

import os
import pickle
import hashlib
import tempfile
import threading
import time
from typing import List, Tuple, Optional

import numpy as np

from ..errors import InvalidInput
from ..logging_config import get_logger
from ..recognition.registry import IdentityRegistry

logger = get_logger(__name__)

# Serialises snapshot + write so the newest snapshot is always written last
_save_lock = threading.Lock()


def get_registry_hash(entries: List[Tuple[str, np.ndarray]]) -> str:
    """
    Compute hash of registry entries for cache validation.
    
    Args:
        entries: List of (name, embedding) pairs
    
    Returns:
        MD5 hash string
    """
    digest = hashlib.md5()
    for name, embedding in entries:
        digest.update(name.encode('utf-8'))
        digest.update(np.asarray(embedding, dtype=np.float32).tobytes())
    return digest.hexdigest()


def save_registry(registry: IdentityRegistry, cache_file: str) -> None:
    """
    Save registered identities to file.
    
    The snapshot is taken under the save lock and written to a temp file
    that replaces the cache, so concurrent saves never leave an older or
    truncated registry on disk.
    
    Args:
        registry: Registry to save
        cache_file: Path to cache file
    """
    directory = os.path.dirname(os.path.abspath(cache_file))
    
    with _save_lock:
        entries = [
            (identity.name, np.array(identity.embedding))
            for identity in registry.snapshot()
        ]
        cache_data = {
            'entries': entries,
            'embedding_dim': registry.embedding_dim,
            'hash': get_registry_hash(entries),
            'timestamp': time.time(),
        }
        
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix='.registry-', suffix='.pkl', dir=directory)
            with os.fdopen(fd, 'wb') as f:
                pickle.dump(cache_data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, cache_file)
            
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error(f'Failed to save registry: {e}')
            return
    
    logger.info(f'Registry saved with {len(entries)} identities')


def load_registry(cache_file: str, embedding_dim: int) -> IdentityRegistry:
    """
    Load registered identities from file.
    
    A missing, corrupt or mismatched cache yields an empty registry.
    
    Args:
        cache_file: Path to cache file
        embedding_dim: Dimensionality the new registry enforces
    
    Returns:
        Registry with cached identities in their original order
    """
    registry = IdentityRegistry(embedding_dim)
    
    cached = _read_cache(cache_file)
    if cached is None:
        return registry
    
    entries, cached_hash = cached
    if get_registry_hash(entries) != cached_hash:
        logger.warning('Registry cache hash mismatch, ignoring cache')
        return registry
    
    for name, embedding in entries:
        try:
            registry.register(name, embedding)
        except InvalidInput as e:
            logger.warning(f'Skipping cached identity {name}: {e}')
    
    return registry


def _read_cache(
    cache_file: str
) -> Optional[Tuple[List[Tuple[str, np.ndarray]], str]]:
    if not os.path.exists(cache_file):
        logger.debug('Registry cache not found')
        return None
    
    try:
        with open(cache_file, 'rb') as f:
            cache_data = pickle.load(f)
        
        age = time.time() - cache_data.get('timestamp', 0)
        logger.info(f'Registry cache found (age: {age:.0f} seconds)')
        
        return cache_data.get('entries') or [], cache_data.get('hash')
        
    except Exception as e:
        logger.error(f'Failed to load registry cache: {e}')
        return None
