"""
Synthesis service boundary.

`SynthesisService` is the interface the render controller depends on.
`VertexSynthesisClient` implements it against the Vertex AI long-running
prediction endpoints, with Cloud Storage for clip inputs and outputs.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

import aiohttp
import google.auth
from google.api_core import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.cloud import storage

from ..errors import ExternalServiceError, TransientServiceError, is_non_retryable_message
from .media_models import OperationStatus, SynthesisRequest, operation_status_from_payload

CLOUD_PLATFORM_SCOPE = 'https://www.googleapis.com/auth/cloud-platform'

MIME_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'webp': 'image/webp',
}


def mime_type_for(path: str) -> str:
    """Image MIME type from the file extension (JPEG when unknown)"""
    extension = str(path).lower().rsplit('.', 1)[-1]
    return MIME_TYPES.get(extension, 'image/jpeg')


def parse_gcs_uri(uri: str) -> Tuple[str, str]:
    match = re.match(r'^gs://([^/]+)/(.+)$', uri)
    if not match:
        raise ExternalServiceError(f"Invalid storage URI: {uri}")
    return match.group(1), match.group(2)


def classify_http_error(status: int, body: str, context: str) -> Exception:
    """Map an HTTP failure to the retryable or permanent error class"""
    message = f"{context} failed: {status} {body[:500]}"
    if is_non_retryable_message(body):
        return ExternalServiceError(message, status_code=status)
    if status == 429 or status >= 500:
        return TransientServiceError(message, status_code=status)
    return ExternalServiceError(message, status_code=status)


class SynthesisService(Protocol):
    """What the render controller needs from a video synthesis backend"""

    async def submit(self, request: SynthesisRequest) -> str:
        """Start an operation and return its handle"""
        ...

    async def poll(self, operation_handle: str) -> OperationStatus:
        ...

    async def fetch(self, uri: str, destination: Path) -> Path:
        """Download a finished clip to a local path"""
        ...

    async def upload(self, local_path: Path, remote_name: str) -> str:
        """Store a local file remotely and return its URI"""
        ...


class VertexSynthesisClient:
    """Vertex AI predictLongRunning client (aiohttp + google-auth + Cloud Storage)"""

    def __init__(self, config):
        self.config = config
        self.options = config.synthesis
        self.logger = logging.getLogger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None
        self._credentials = None
        self._storage_client: Optional[storage.Client] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.options.request_timeout_seconds)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def _model_url(self, project: str, location: str, model: str, method: str) -> str:
        return (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
            f"/locations/{location}/publishers/google/models/{model}:{method}"
        )

    async def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials, _ = await asyncio.to_thread(google.auth.default, scopes=[CLOUD_PLATFORM_SCOPE])
        if not self._credentials.valid:
            await asyncio.to_thread(self._credentials.refresh, Request())
        return self._credentials.token

    def _storage(self) -> storage.Client:
        if self._storage_client is None:
            self._storage_client = storage.Client(project=self.options.project_id or None)
        return self._storage_client

    async def _post(self, url: str, body: Dict[str, Any], context: str) -> Dict[str, Any]:
        if self.session is None:
            raise RuntimeError("VertexSynthesisClient must be used as an async context manager")

        headers = {
            'Authorization': f"Bearer {await self._access_token()}",
            'Content-Type': 'application/json',
        }
        try:
            async with self.session.post(url, json=body, headers=headers) as response:
                if response.status != 200:
                    raise classify_http_error(response.status, await response.text(), context)
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientServiceError(f"{context} failed: {e}") from e

    @staticmethod
    def build_request_body(request: SynthesisRequest) -> Dict[str, Any]:
        instance: Dict[str, Any] = {
            'prompt': request.prompt,
            'image': {'gcsUri': request.image_uri, 'mimeType': mime_type_for(request.image_uri)},
        }
        if request.last_frame_uri:
            instance['lastFrame'] = {'gcsUri': request.last_frame_uri, 'mimeType': 'image/png'}

        parameters: Dict[str, Any] = {
            'durationSeconds': request.duration_seconds,
            'aspectRatio': request.aspect,
            'sampleCount': 1,
            'generateAudio': request.generate_audio,
            'personGeneration': 'disallow',
        }
        if request.resolution:
            parameters['resolution'] = request.resolution
        if request.seed is not None:
            parameters['seed'] = request.seed
        if request.storage_uri:
            parameters['storageUri'] = request.storage_uri

        return {'instances': [instance], 'parameters': parameters}

    async def submit(self, request: SynthesisRequest) -> str:
        url = self._model_url(request.project_id, request.location, request.model, 'predictLongRunning')
        payload = await self._post(url, self.build_request_body(request), 'Synthesis submit')

        handle = payload.get('name')
        if not handle:
            raise ExternalServiceError("Synthesis submit returned no operation name")
        self.logger.info(f"Submitted synthesis operation {handle}")
        return handle

    async def poll(self, operation_handle: str) -> OperationStatus:
        project = re.search(r'projects/([^/]+)', operation_handle)
        location = re.search(r'locations/([^/]+)', operation_handle)
        url = self._model_url(
            project.group(1) if project else self.options.project_id,
            location.group(1) if location else self.options.location,
            self.options.model,
            'fetchPredictOperation',
        )
        payload = await self._post(url, {'operationName': operation_handle}, 'Synthesis poll')
        return operation_status_from_payload(payload, operation_handle)

    async def fetch(self, uri: str, destination: Path) -> Path:
        bucket_name, blob_path = parse_gcs_uri(uri)
        destination.parent.mkdir(parents=True, exist_ok=True)
        blob = self._storage().bucket(bucket_name).blob(blob_path)
        try:
            await asyncio.to_thread(blob.download_to_filename, str(destination))
        except google_exceptions.GoogleAPIError as e:
            raise ExternalServiceError(f"Failed to download {uri}: {e}") from e
        self.logger.info(f"Downloaded {uri} -> {destination}")
        return destination

    async def upload(self, local_path: Path, remote_name: str) -> str:
        bucket_name = self.options.bucket_name
        if not bucket_name:
            raise ExternalServiceError("No storage bucket configured for synthesis inputs")

        blob = self._storage().bucket(bucket_name).blob(remote_name)
        try:
            await asyncio.to_thread(
                blob.upload_from_filename, str(local_path), content_type=mime_type_for(str(local_path))
            )
        except google_exceptions.GoogleAPIError as e:
            raise ExternalServiceError(f"Failed to upload {local_path}: {e}") from e
        return f"gs://{bucket_name}/{remote_name}"
