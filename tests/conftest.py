"""Shared fakes and fixtures: no network, no ffmpeg binary"""

import asyncio
from pathlib import Path
from typing import List, Optional

import pytest

from home_tour.errors import AssemblyError
from home_tour.media_generation.media_models import OperationStatus
from home_tour.planning.planning_models import ImageDescriptor, RoomType
from home_tour.utils.config import Config, PathsConfig, SynthesisConfig
from home_tour.video_assembly.ffmpeg_runner import FFmpegRunner
from home_tour.video_assembly.video_models import MediaInfo

OUTPUT_SUFFIXES = ('.mp4', '.m4a', '.png', '.mov')


class FakeRunner(FFmpegRunner):
    """Records ffmpeg invocations and creates the output file each one names"""

    def __init__(self, fail_on: Optional[str] = None):
        super().__init__()
        self.calls = []
        self.fail_on = fail_on

    async def run(self, args, description='ffmpeg'):
        self.calls.append((list(args), description))
        # Yield like a real subprocess so concurrent assemblies interleave
        await asyncio.sleep(0)
        if self.fail_on and self.fail_on in description:
            raise AssemblyError(f"{description} failed (exit 1)", "Conversion failed!")

        # Output is the last media path (ffmpeg-python appends -y after it)
        outputs = [a for a in args if isinstance(a, str) and a.endswith(OUTPUT_SUFFIXES)]
        if outputs:
            out = Path(outputs[-1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(b'fake media')
        return ''

    async def probe(self, path):
        return MediaInfo(duration=8.0, width=1920, height=1080, fps=24.0, has_video=True)

    def descriptions(self) -> List[str]:
        return [description for _, description in self.calls]

    def call_for(self, description: str) -> List[str]:
        for args, desc in self.calls:
            if description in desc:
                return args
        raise AssertionError(f"no ffmpeg call matching {description!r}: {self.descriptions()}")


class FakeSynthesisService:
    """Scripted stand-in for the remote synthesis API"""

    def __init__(self, poll_responses=None, submit_errors=None, poll_error=None,
                 result_uri='gs://test-bucket/output/clip.mp4'):
        self.poll_responses = list(poll_responses or [])
        self.submit_errors = list(submit_errors or [])
        self.poll_error = poll_error
        self.result_uri = result_uri
        self.submitted = []
        self.polls = 0
        self.uploads = []
        self.fetched = []

    async def submit(self, request):
        self.submitted.append(request)
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        return f"projects/test-project/locations/us-central1/operations/op-{len(self.submitted)}"

    async def poll(self, operation_handle):
        self.polls += 1
        if self.poll_error is not None:
            raise self.poll_error
        if self.poll_responses:
            return self.poll_responses.pop(0)
        return OperationStatus(name=operation_handle, done=True,
                               response={'videos': [{'gcsUri': self.result_uri, 'mimeType': 'video/mp4'}]})

    async def fetch(self, uri, destination):
        self.fetched.append(uri)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(b'synthesized clip')
        return destination

    async def upload(self, local_path, remote_name):
        self.uploads.append((Path(local_path), remote_name))
        return f"gs://test-bucket/{remote_name}"


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def pending(handle='op'):
    return OperationStatus(name=handle, done=False)


def images_for(rooms, per_room=1, root=Path('/photos')) -> List[ImageDescriptor]:
    images = []
    for room in rooms:
        for index in range(per_room):
            name = room.value if isinstance(room, RoomType) else str(room)
            images.append(ImageDescriptor(path=root / f"{name}_{index}.jpg", room=room))
    return images


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def fake_service():
    return FakeSynthesisService()


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def config(tmp_path):
    return Config(
        synthesis=SynthesisConfig(project_id='test-project', bucket_name='test-bucket'),
        paths=PathsConfig(
            output=str(tmp_path / 'output'),
            temp=str(tmp_path / 'cache'),
            logs=str(tmp_path / 'logs'),
        ),
    )


@pytest.fixture
def photo_dir(tmp_path):
    """Real (tiny) image files so existence checks pass"""
    directory = tmp_path / 'photos'
    directory.mkdir()
    return directory


@pytest.fixture
def make_photos(photo_dir):
    def make(rooms, per_room=1) -> List[ImageDescriptor]:
        images = images_for(rooms, per_room, root=photo_dir)
        for image in images:
            image.path.write_bytes(b'\xff\xd8\xff fake jpeg')
        return images
    return make
