"""
FastAPI entrypoint for the analysis relay.

Routes:
- GET /             liveness
- POST /api/analyze multipart upload of 2-5 images -> roast result envelope

Every outcome is returned as an envelope: {"success": true, "data": ...} or
{"success": false, "message": ..., "raw"?: ...}.
"""

import os
import logging
from dotenv import load_dotenv, find_dotenv

# Load environment variables from .env file (optional).
# Some editors save .env as UTF-16; support both UTF-8 and UTF-16.
_dotenv_path = find_dotenv(usecwd=True) or None
if _dotenv_path:
    try:
        load_dotenv(_dotenv_path)
    except UnicodeError:
        load_dotenv(_dotenv_path, encoding="utf-16")
else:
    # No .env found; rely on process env
    load_dotenv()

# Configure logging with environment-based level
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional

from .schemas import ErrorEnvelope, HealthResponse, ImageUpload, SuccessEnvelope
from .settings import Settings, get_settings
from . import analyzer
from .analyzer import OutputFormatError, UploadRejected


def _error(status_code: int, message: str, raw: Optional[str] = None) -> JSONResponse:
    body = ErrorEnvelope(message=message, raw=raw).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # e.g. a plain text field sent under "images" instead of a file
    logger.warning("analyze.rejected reason=malformed_form errors=%s", exc.errors()[:3])
    return _error(400, "Only image files are allowed!")


def _app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _read_upload(file: UploadFile) -> ImageUpload:
    """Read one multipart entry fully into memory."""
    return ImageUpload(
        filename=getattr(file, "filename", None) or "upload",
        content_type=file.content_type or "",
        data=file.file.read(),
    )


def analyze_endpoint(
    images: Optional[List[UploadFile]] = File(None),
    settings: Settings = Depends(_app_settings),
):
    files = images or []
    logger.info("analyze.request files=%d", len(files))

    try:
        batch = [_read_upload(f) for f in files]
        result = analyzer.analyze(batch, settings)
    except UploadRejected as e:
        return _error(400, e.message)
    except OutputFormatError as e:
        return _error(500, "AI output format could not be parsed", raw=e.raw)
    except Exception as e:
        logger.error("Analysis Error", exc_info=True)
        return _error(500, f"internal server error: {e}")

    return SuccessEnvelope(data=result).model_dump()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the relay with an explicit configuration (env-derived by default)."""
    settings = settings or get_settings()

    app = FastAPI(title="Moments Roast Analysis Relay")
    app.state.settings = settings
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_model=HealthResponse)
    def root():
        return {"status": "ok", "message": "Moments roast analysis relay is running"}

    app.add_api_route("/api/analyze", analyze_endpoint, methods=["POST"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    st = get_settings()
    logger.info("Relay starting host=%s port=%d model=%s", st.host, st.port, st.model_id)
    uvicorn.run(app, host=st.host, port=st.port)
