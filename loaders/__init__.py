"""
Data loaders package.
"""

from loaders.array import ArrayLoader
from loaders.phantom import PhantomLoader, PHANTOM_KINDS

__all__ = [
    'ArrayLoader',
    'PhantomLoader',
    'PHANTOM_KINDS',
]
