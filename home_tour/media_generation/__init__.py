"""
Media Generation

Produces one video segment per scene, either through the remote synthesis
service or as a local pan/zoom render of a still image.
"""

from .render_job import RenderJobController
from .pan_zoom import PanZoomCalculator
from .media_pipeline import SegmentRenderer
from .synthesis_client import SynthesisService, VertexSynthesisClient

__all__ = [
    'RenderJobController',
    'PanZoomCalculator',
    'SegmentRenderer',
    'SynthesisService',
    'VertexSynthesisClient'
]
