"""
Utility modules package.
"""

from .cache import load_registry, save_registry, get_registry_hash

__all__ = [
    'load_registry',
    'save_registry',
    'get_registry_hash',
]
