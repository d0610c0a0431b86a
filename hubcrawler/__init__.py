"""
hubcrawler - Container registry overview

Aggregates a private Docker registry's repositories, tags, build provenance
and content digests into one view.
"""

from .base import AggregatedImage, AggregationResult, Message, Provenance, ResolvedTag
from .client import Deadline, RegistryClient
from .config import AppConfig, load_config
from .pipeline import aggregate
from .ranking import rank_tags

__all__ = [
    'AggregatedImage',
    'AggregationResult',
    'AppConfig',
    'Deadline',
    'Message',
    'Provenance',
    'RegistryClient',
    'ResolvedTag',
    'aggregate',
    'load_config',
    'rank_tags',
]

__version__ = '0.1.0'
