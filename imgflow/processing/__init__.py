"""
Processing package: transformation planning and the image codec.
"""

from imgflow.processing.codec import ImageCodec, PillowCodec
from imgflow.processing.planner import (
    ResizeGeometry,
    TransformPlan,
    build_plan,
    normalize_format,
)

__all__ = [
    'ImageCodec',
    'PillowCodec',
    'ResizeGeometry',
    'TransformPlan',
    'build_plan',
    'normalize_format'
]
