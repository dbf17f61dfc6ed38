"""Resource loaders."""
from .base import BaseResourceLoader, ResourceLoader
from .filesystem import FileResourceLoader
from .http import HttpResourceLoader
from .memory import InMemoryResourceLoader

__all__ = [
    'ResourceLoader',
    'BaseResourceLoader',
    'InMemoryResourceLoader',
    'FileResourceLoader',
    'HttpResourceLoader'
]
