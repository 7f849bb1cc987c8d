"""
Upload client for the analysis relay.

Holds the user's working list of images, shrinks each one best-effort with
Pillow, posts them in a single multipart request and maps failures to
messages a user can act on. The Streamlit view in ui.py is a thin shell
over this module.
"""

import io
import logging
import time
from typing import List, Optional

import httpx
from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from .schemas import AnalysisResult, ImageUpload
from .settings import Settings

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1024
JPEG_QUALITY = 70
SOFT_MAX_IMAGES = 5
MIN_IMAGES = 2
UPLOAD_FIELD = "images"


class ClientValidationError(ValueError):
    """Raised before any network call when the working list is unusable."""


class CompressionError(RuntimeError):
    pass


class AnalysisFailed(RuntimeError):
    """The relay call failed; carries what the user and a developer need."""

    def __init__(self, user_message: str, status: Optional[int] = None, server_message: Optional[str] = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.status = status
        self.server_message = server_message


def compress_image(data: bytes, max_dimension: int = MAX_DIMENSION, quality: int = JPEG_QUALITY) -> bytes:
    """Bound the longest side to max_dimension and re-encode as JPEG."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.thumbnail((max_dimension, max_dimension))
            if img.mode != "RGB":
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise CompressionError(f"Could not compress image: {e}") from e
    return out.getvalue()


def prepare_upload(image: ImageUpload) -> ImageUpload:
    """Compressed copy of the image, or the original when compression fails."""
    try:
        data = compress_image(image.data)
    except CompressionError as e:
        logger.warning("compress.failed filename=%s err=%s (sending original)", image.filename, e)
        return image
    return ImageUpload(filename=image.filename, content_type="image/jpeg", data=data)


def describe_failure(status: Optional[int], server_message: Optional[str]) -> str:
    user_msg = "Network request failed, please try again later"
    if status == 413:
        user_msg = "Images are too large in total, please upload fewer or smaller images"
    elif status == 504:
        user_msg = "The AI took too long to answer, please try again"
    elif status == 500:
        user_msg = "Server error, the API key may not be configured"
    return f"{user_msg} ({status or 'Error'}: {server_message})"


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class RelayClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = settings.relay_url.rstrip("/")
        self.timeout = settings.client_timeout
        self._transport = transport

    def analyze(self, images: List[ImageUpload], compress: bool = True) -> AnalysisResult:
        if len(images) < MIN_IMAGES:
            raise ClientValidationError(f"For an accurate analysis, please upload at least {MIN_IMAGES} screenshots")

        prepared = [prepare_upload(i) for i in images] if compress else list(images)
        files = [(UPLOAD_FIELD, (i.filename, i.data, i.content_type)) for i in prepared]
        logger.info("relay.submit images=%d bytes=%d", len(files), sum(len(i.data) for i in prepared))

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(f"{self.base_url}/api/analyze", files=files)
        except httpx.HTTPError as e:
            logger.error("relay.transport_error err=%s", e)
            raise AnalysisFailed(describe_failure(None, str(e)), None, str(e)) from e

        if response.is_error:
            server_msg = _server_message(response)
            logger.error("relay.failed status=%d message=%s", response.status_code, server_msg)
            raise AnalysisFailed(describe_failure(response.status_code, server_msg), response.status_code, server_msg)

        try:
            body = response.json()
        except ValueError as e:
            logger.error("relay.bad_body status=%d err=%s", response.status_code, e)
            raise AnalysisFailed(describe_failure(response.status_code, str(e)), response.status_code, str(e)) from e

        if not isinstance(body, dict) or not body.get("success"):
            server_msg = (body.get("message") if isinstance(body, dict) else None) or "unknown error"
            raise AnalysisFailed(f"Analysis failed: {server_msg}", response.status_code, server_msg)

        try:
            return AnalysisResult.model_validate(body.get("data") or {})
        except ValidationError as e:
            logger.error("relay.bad_result status=%d err=%s", response.status_code, e)
            raise AnalysisFailed(describe_failure(response.status_code, str(e)), response.status_code, str(e)) from e


class UploadSession:
    """Working list + result state behind the upload/result views."""

    def __init__(self, max_images: int = SOFT_MAX_IMAGES):
        self.max_images = max_images
        self.images: List[ImageUpload] = []
        self.result: Optional[AnalysisResult] = None
        self.analyzing = False

    def add(self, image: ImageUpload) -> bool:
        if len(self.images) >= self.max_images:
            logger.warning("session.full max=%d ignored=%s", self.max_images, image.filename)
            return False
        self.images.append(image)
        return True

    def can_submit(self) -> bool:
        return len(self.images) >= MIN_IMAGES

    def submit(self, client: RelayClient) -> AnalysisResult:
        self.analyzing = True
        self.result = None
        try:
            self.result = client.analyze(self.images)
            return self.result
        finally:
            self.analyzing = False

    def reset(self) -> None:
        self.images = []
        self.result = None
        self.analyzing = False


class ProgressStages:
    """
    Cosmetic loading steps shown while a request is in flight.

    Purely time based: it does not reflect relay progress and the caller
    discards it as soon as the request settles.
    """

    LABELS = [
        "👀 Peeking at the photos...",
        "🧠 Analyzing with every trick in the book...",
        "📝 Sharpening the roast...",
        "✨ Writing up the report...",
    ]
    INTERVAL = 3.0

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._started = clock()

    @classmethod
    def stage_at(cls, elapsed: float) -> int:
        if elapsed <= 0:
            return 0
        return min(int(elapsed // cls.INTERVAL), len(cls.LABELS) - 1)

    def current(self) -> int:
        return self.stage_at(self._clock() - self._started)
