"""Hypothesis point generation phases and the pipeline that runs them."""

from .anchors import generate_anchor_points
from .deduplication import DeduplicationResult, deduplicate
from .grid import generate_coarse_grid, generate_local_refinement
from .matrix import MatrixAcquisition, acquire_travel_times
from .pipeline import (
    GenerationConfig,
    GenerationStage,
    HypothesisPointGenerator,
    run_generation,
    validate_locations,
)

__all__ = [
    "generate_anchor_points",
    "generate_coarse_grid",
    "generate_local_refinement",
    "deduplicate",
    "DeduplicationResult",
    "acquire_travel_times",
    "MatrixAcquisition",
    "GenerationConfig",
    "GenerationStage",
    "HypothesisPointGenerator",
    "run_generation",
    "validate_locations",
]
