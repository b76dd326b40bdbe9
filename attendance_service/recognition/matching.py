"""
Embedding matching module.

Matches face embeddings against registered identities using Euclidean
distance.
"""

import math
from typing import Sequence

import numpy as np

from ..errors import DimensionMismatch
from ..models import UNKNOWN_LABEL, Identity, MatchResult


class Matcher:
    """
    Nearest-neighbour classifier over one registry snapshot.
    
    Immutable once built. Rebuild it when the registry changes.
    """
    
    def __init__(self, identities: Sequence[Identity], threshold: float):
        """
        Build matcher.
        
        Args:
            identities: Registry snapshot, in registration order
            threshold: Distances at or above this are "Unknown"
        """
        self.threshold = threshold
        self._names = [identity.name for identity in identities]
        self._dims = {identity.embedding.shape[0] for identity in identities}
        
        if len(self._dims) == 1:
            self._matrix = np.stack([identity.embedding for identity in identities])
        else:
            self._matrix = None
    
    def __len__(self) -> int:
        return len(self._names)
    
    def classify(self, embedding: np.ndarray) -> MatchResult:
        """
        Match one embedding against all registered identities.
        
        Ties on the minimal distance go to the earliest registration.
        
        Args:
            embedding: Query embedding
        
        Returns:
            MatchResult with the identity name, or "Unknown" when nothing is
            strictly closer than the threshold
        
        Raises:
            DimensionMismatch: If the query length differs from any entry
            ValueError: If the query is not numeric
        """
        if not self._names:
            return MatchResult(label=UNKNOWN_LABEL, distance=math.inf)
        
        query = np.asarray(embedding, dtype=np.float32).ravel()
        
        if not np.all(np.isfinite(query)):
            return MatchResult(label=UNKNOWN_LABEL, distance=math.inf)
        
        for dim in self._dims:
            if query.shape[0] != dim:
                raise DimensionMismatch(expected=dim, actual=query.shape[0])
        
        distances = np.linalg.norm(self._matrix - query, axis=1)
        
        # np.argmin returns the first occurrence, which keeps ties stable
        best_idx = int(np.argmin(distances))
        best_distance = float(distances[best_idx])
        
        if best_distance < self.threshold:
            return MatchResult(label=self._names[best_idx], distance=best_distance)
        
        return MatchResult(label=UNKNOWN_LABEL, distance=best_distance)
