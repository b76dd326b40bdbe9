"""
Recognition algorithms package.

Contains modules for:
- Identity registry
- Embedding matching
- Cooldown gating
"""

from .registry import IdentityRegistry
from .matching import Matcher
from .cooldown import CooldownGate

__all__ = [
    'IdentityRegistry',
    'Matcher',
    'CooldownGate',
]
