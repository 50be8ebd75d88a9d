"""Video transcoding functionality.

This package provides two levels of functionality:
- core: Low-level FFmpeg utilities (command building, running one stage)
- pipeline: One encode + remux attempt with artifact cleanup
"""

from .core import (
    Stage,
    build_encode_cmd,
    build_remux_cmd,
    run_stage,
)
from .pipeline import (
    PipelineResult,
    TranscodePipeline,
)

__all__ = [
    "Stage",
    "build_encode_cmd",
    "build_remux_cmd",
    "run_stage",
    "PipelineResult",
    "TranscodePipeline",
]
