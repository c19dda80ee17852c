"""Resolver package for the business review service."""

from .fallback import FallbackResolver
from .static_dataset import StaticDataset, load_static_dataset

__all__ = ["FallbackResolver", "StaticDataset", "load_static_dataset"]
