"""
Video Assembly Pipeline

Combines rendered segments into the final tour:
- Crossfade or hard-cut timeline
- Voiceover and ducked music mix
- Final mux with the video stream copied
"""

from .video_assembler import VideoAssembler
from .video_models import AssemblyRequest, AssemblyResult, AudioTrack, VideoSegment

__all__ = [
    'VideoAssembler',
    'AssemblyRequest',
    'AssemblyResult',
    'AudioTrack',
    'VideoSegment'
]
