#!/usr/bin/env python3
"""
Home Tour Video Engine - Main Entry Point
Turns a set of property photos into a narrated video tour.
"""

import asyncio
import re
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn
from rich.table import Table
from dotenv import load_dotenv

from home_tour.errors import HomeTourError
from home_tour.media_generation.synthesis_client import VertexSynthesisClient
from home_tour.planning.plan_validator import validate_tour_inputs
from home_tour.planning.planning_models import ImageDescriptor, RoomType
from home_tour.planning.scene_planner import ScenePlanner
from home_tour.tour_pipeline import HomeTourPipeline, TourRequest
from home_tour.utils.config import Config
from home_tour.utils.logger import setup_logging

load_dotenv(dotenv_path=Path(__file__).parent / ".env.local")

console = Console()

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}

# Filename keywords used when no explicit room is given
ROOM_KEYWORDS = [
    (re.compile(r'(exterior|front|facade|curb|outside)'), RoomType.EXTERIOR),
    (re.compile(r'(entry|entryway|foyer|entrance|door)'), RoomType.ENTRY),
    (re.compile(r'(living|family|great.room|lounge)'), RoomType.LIVING),
    (re.compile(r'(kitchen|cook|dining)'), RoomType.KITCHEN),
    (re.compile(r'(master|bedroom|bed)'), RoomType.BEDROOM),
    (re.compile(r'(bathroom|bath|powder|ensuite)'), RoomType.BATHROOM),
    (re.compile(r'(backyard|back.yard|patio|deck|garden|yard)'), RoomType.BACKYARD),
]


def guess_room(path: Path) -> Optional[RoomType]:
    name = path.name.lower()
    for pattern, room in ROOM_KEYWORDS:
        if pattern.search(name):
            return room
    return None


def parse_image_arg(arg: str) -> List[ImageDescriptor]:
    """`photo.jpg`, `photo.jpg:kitchen` or a directory of photos"""
    room: Optional[str] = None
    path_text = arg
    if ':' in arg and not Path(arg).exists():
        path_text, room = arg.rsplit(':', 1)

    path = Path(path_text)
    if path.is_dir():
        files = sorted(p for p in path.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
        return [ImageDescriptor(path=p, room=room or guess_room(p)) for p in files]

    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    return [ImageDescriptor(path=path, room=room or guess_room(path))]


def collect_images(args: List[str]) -> List[ImageDescriptor]:
    images: List[ImageDescriptor] = []
    for arg in args:
        images.extend(parse_image_arg(arg))
    return images


class HomeTourApp:
    """CLI coordinator for planning, validating and rendering tours"""

    def __init__(self, config_path: str = "configs/config.yaml"):
        if Path(config_path).exists():
            self.config = Config.load(config_path)
        else:
            console.print(f"[yellow]⚠[/yellow] Config not found at {config_path}, using defaults")
            self.config = Config().apply_env_overrides()
        self.logger = setup_logging(self.config)

    def show_plan(self, images: List[ImageDescriptor], target: float) -> None:
        plan = ScenePlanner.from_config(self.config).plan_scenes(images, target)

        table = Table(title=f"Scene plan ({plan.total_duration:.1f}s of {target:.0f}s target)")
        table.add_column("Scene", style="cyan")
        table.add_column("Room")
        table.add_column("Technique")
        table.add_column("Duration", justify="right")
        table.add_column("Images", justify="right")
        for scene in plan.scenes:
            technique_style = "magenta" if scene.technique.value == "ai-synthesis" else "green"
            table.add_row(
                scene.id,
                scene.room.value,
                f"[{technique_style}]{scene.technique.value}[/{technique_style}]",
                f"{scene.duration:.1f}s",
                str(len(scene.images)),
            )
        console.print(table)

        cost = plan.ai_synthesis_segments * self.config.synthesis.cost_per_segment
        console.print(f"[blue]💰[/blue] Estimated synthesis cost: ${cost:.2f}")

    def show_validation(self, images: List[ImageDescriptor], target: float) -> None:
        report = validate_tour_inputs(
            images, target,
            cost_per_segment=self.config.synthesis.cost_per_segment,
            max_ai_segments=self.config.planner.max_ai_segments,
        )
        console.print(f"[green]📷[/green] Images: {report.image_count}")
        for room, count in sorted(report.room_distribution.items()):
            console.print(f"  • {room}: {count}")
        console.print(f"[green]🎬[/green] AI segments: {report.estimated_ai_segments}, "
                      f"pan/zoom segments: {report.estimated_pan_zoom_segments}")
        console.print(f"[blue]💰[/blue] Estimated cost: ${report.estimated_cost:.2f}")

        if report.warnings:
            for warning in report.warnings:
                console.print(f"[yellow]⚠[/yellow] {warning}")
        else:
            console.print("[green]✅[/green] No warnings")

    async def render(self, request: TourRequest) -> str:
        console.print("[blue]🎬[/blue] Starting home tour generation...")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console,
            refresh_per_second=4,
        ) as progress:
            task = progress.add_task("[cyan]Preparing...", total=100)

            def on_progress(phase: str, percent: float, message: Optional[str] = None):
                progress.update(task, completed=percent, description=f"[cyan]{phase}: {message or ''}")

            async with VertexSynthesisClient(self.config) as service:
                pipeline = HomeTourPipeline(self.config, service, progress_callback=on_progress)
                result = await pipeline.run(request)
            progress.update(task, completed=100)

        console.print("\n[bold green]🎉 Home Tour Complete![/bold green]")
        console.print(f"[green]🎞️[/green] Scenes: {result.ai_synthesis_segments} AI, "
                      f"{result.pan_zoom_segments} pan/zoom")
        console.print(f"[green]🎬[/green] Planned duration: {result.duration:.1f}s")
        console.print(f"[green]💰[/green] Estimated cost: ${result.estimated_cost:.2f}")
        console.print(f"[green]⏱️[/green] Processing time: {result.processing_time:.1f}s")
        console.print(f"[green]✅[/green] Video saved: {result.output_path}")
        return str(result.output_path)


def main():
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Home Tour Video Engine")
    parser.add_argument("--config", type=str, default="configs/config.yaml",
                        help="Path to configuration file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub):
        sub.add_argument("images", nargs="+",
                         help="Image files or directories, optionally suffixed with :room")
        sub.add_argument("--target", type=float, default=None, help="Target tour length in seconds")

    add_common(subparsers.add_parser("plan", help="Show the scene plan without rendering"))
    add_common(subparsers.add_parser("validate", help="Check the image set and estimate cost"))

    render_parser = subparsers.add_parser("render", help="Generate the full tour video")
    add_common(render_parser)
    render_parser.add_argument("--out", type=str, default=None, help="Output video path")
    render_parser.add_argument("--voiceover", type=str, default=None, help="Prepared narration audio file")
    render_parser.add_argument("--music", type=str, default=None, help="Background music file")
    render_parser.add_argument("--music-volume", type=float, default=None, help="Music volume 0..1")

    args = parser.parse_args()

    try:
        app = HomeTourApp(args.config)
        images = collect_images(args.images)
        target = args.target or app.config.output.target_seconds

        if args.command == "plan":
            app.show_plan(images, target)
        elif args.command == "validate":
            app.show_validation(images, target)
        elif args.command == "render":
            request = TourRequest(
                images=images,
                target_seconds=target,
                output_path=args.out,
                voiceover_path=args.voiceover,
                music_path=args.music,
                music_volume=args.music_volume,
            )
            asyncio.run(app.render(request))

    except KeyboardInterrupt:
        console.print("\n[yellow]⏹️[/yellow] Stopped by user")
    except (HomeTourError, FileNotFoundError) as e:
        console.print(f"[red]❌[/red] Error: {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]💥[/red] Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
