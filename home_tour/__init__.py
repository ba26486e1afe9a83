"""
Home Tour Video Engine

Turns a set of property photos into a narrated video tour: scene planning,
AI-synthesized and pan/zoom segments, and crossfaded timeline assembly.
"""

from .errors import HomeTourError
from .tour_pipeline import HomeTourPipeline, TourRequest, TourResult

__version__ = "0.1.0"

__all__ = [
    'HomeTourPipeline',
    'TourRequest',
    'TourResult',
    'HomeTourError'
]
