"""Generation orchestrator: runs the stage pipeline and shapes response bodies."""

from .service import (
    VERSION,
    GenerationResult,
    GenerationService,
    match_resource_url,
    resolve_source,
)

__all__ = [
    "VERSION",
    "GenerationResult",
    "GenerationService",
    "match_resource_url",
    "resolve_source",
]
