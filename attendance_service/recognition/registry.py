"""
Identity registry module.

Holds named reference embeddings in registration order.
Registrations are never removed or merged.
"""

import threading
from typing import Any, List, Tuple

from ..errors import InvalidInput
from ..logging_config import get_logger
from ..models import Identity, freeze_embedding

logger = get_logger(__name__)


class IdentityRegistry:
    """
    Thread-safe, append-only collection of identities.
    
    Every registration bumps `version`, so holders of a Matcher built
    from an older snapshot can tell that it is stale.
    """
    
    def __init__(self, embedding_dim: int):
        """
        Initialize registry.
        
        Args:
            embedding_dim: Required length of every embedding
        """
        self.embedding_dim = embedding_dim
        self._identities: List[Identity] = []
        self._lock = threading.Lock()
        self._version = 0
    
    def register(self, name: str, embedding: Any) -> Identity:
        """
        Register a named embedding.
        
        The same name may be registered more than once; each call adds an
        independent entry.
        
        Args:
            name: Display name of the person
            embedding: Reference embedding
        
        Returns:
            The stored identity
        
        Raises:
            InvalidInput: If name is blank or embedding has wrong dimensionality
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidInput('Name must be a non-empty string')
        
        vector = freeze_embedding(embedding)
        if vector.shape[0] != self.embedding_dim:
            raise InvalidInput(
                f'Embedding for {name.strip()} has {vector.shape[0]} values, '
                f'expected {self.embedding_dim}'
            )
        
        identity = Identity(name=name.strip(), embedding=vector)
        
        with self._lock:
            self._identities.append(identity)
            self._version += 1
            count = len(self._identities)
        
        logger.info(f'✅ Registered {identity.name} ({count} identities total)')
        return identity
    
    def snapshot(self) -> Tuple[Identity, ...]:
        """
        Point-in-time view in registration order.
        
        Identities and their embeddings are immutable, so the tuple can be
        handed out without copying them.
        """
        with self._lock:
            return tuple(self._identities)
    
    def versioned_snapshot(self) -> Tuple[int, Tuple[Identity, ...]]:
        """Snapshot together with the version it was taken at."""
        with self._lock:
            return self._version, tuple(self._identities)
    
    @property
    def version(self) -> int:
        with self._lock:
            return self._version
    
    def names(self) -> List[str]:
        return [identity.name for identity in self.snapshot()]
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._identities)
