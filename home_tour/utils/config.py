"""Configuration management for the home tour engine"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field


class OutputConfig(BaseModel):
    path: str = "./output/home_tour.mp4"
    aspect: Literal["16:9", "9:16"] = "16:9"
    resolution: Literal["720p", "1080p"] = "1080p"
    target_seconds: float = Field(default=90.0, gt=0)
    fps: int = Field(default=24, gt=0)


class PlannerConfig(BaseModel):
    prefer_ai_synthesis: bool = True
    max_ai_segments: int = Field(default=15, ge=0)  # rate limit consideration
    min_segment_duration: float = 4.0
    max_segment_duration: float = 8.0
    crossfade_duration: float = 0.75


class SynthesisConfig(BaseModel):
    project_id: str = ""
    location: str = "us-central1"
    model: str = "veo-3.0-fast-generate-001"
    bucket_name: Optional[str] = None
    generate_audio: bool = False
    use_continuation_frames: bool = False
    max_poll_attempts: int = Field(default=60, ge=1)
    submit_attempts: int = Field(default=3, ge=1)
    max_concurrent_renders: int = Field(default=1, ge=1)
    cost_per_segment: float = 0.50
    request_timeout_seconds: float = 60.0


class PanZoomConfig(BaseModel):
    fps: int = 24
    codec: str = "libx264"
    crf: int = 23
    preset: str = "medium"


class AssemblyConfig(BaseModel):
    codec: str = "libx264"
    crf: int = 20
    preset: str = "medium"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    pixel_format: str = "yuv420p"
    crossfade_duration: float = 0.75
    transition: Literal["crossfade", "hard_cut"] = "crossfade"


class AudioConfig(BaseModel):
    music_volume: float = Field(default=0.3, ge=0.0, le=1.0)
    voiceover_volume: float = Field(default=1.0, ge=0.0, le=1.0)
    duck_factor: float = Field(default=0.4, ge=0.0, le=1.0)


class PathsConfig(BaseModel):
    """Storage paths configuration"""
    output: str = "./output"
    temp: str = "./.cache/home-tour"
    logs: str = "./logs"
    keep_temp: bool = False  # keep rendered segments after a successful run


class Config(BaseModel):
    output: OutputConfig = OutputConfig()
    planner: PlannerConfig = PlannerConfig()
    synthesis: SynthesisConfig = SynthesisConfig()
    pan_zoom: PanZoomConfig = PanZoomConfig()
    assembly: AssemblyConfig = AssemblyConfig()
    audio: AudioConfig = AudioConfig()
    paths: PathsConfig = PathsConfig()
    logging: Dict[str, Any] = {}

    def apply_env_overrides(self) -> "Config":
        """Let deployment environment variables win over file values"""
        project_id = os.getenv("HOME_TOUR_PROJECT_ID")
        if project_id:
            self.synthesis.project_id = project_id
        bucket = os.getenv("HOME_TOUR_BUCKET")
        if bucket:
            self.synthesis.bucket_name = bucket
        location = os.getenv("HOME_TOUR_LOCATION")
        if location:
            self.synthesis.location = location
        return self

    @classmethod
    def load(cls, config_path: str) -> "Config":
        """Load configuration from YAML file"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data).apply_env_overrides()

    def save(self, config_path: str):
        """Save configuration to YAML file"""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)
