"""Service layer.

Exposes:
- BackendResolver
- PipelineOrchestrator
"""

from .resolver import BackendResolver, DeclarativeSelection, InteractiveSelection
from .pipeline import PipelineOrchestrator

__all__ = [
    "BackendResolver",
    "DeclarativeSelection",
    "InteractiveSelection",
    "PipelineOrchestrator",
]
