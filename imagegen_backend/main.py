"""
Image Generation Backend - FastAPI Main Module
API endpoints for image generation
"""

import json
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from .config import Settings, load_settings, parse_origins
from .errors import ConfigurationError, MalformedBodyError, TooManyImagesError, TransportError, UpstreamError, ValidationError
from .normalizer import normalize_request
from .profiles import DEFAULT_PROFILE, MAX_IMAGES, PROFILES
from .provider import ProviderClient, ReplicateClient, dispatch
from .schemas import (
    BackendTestResponse,
    ErrorResponse,
    GenerateImageResponse,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
    ParameterInfo,
    error_payload,
)
from .utils import ImageAttachment, remove_attachments, save_upload, truncate_data_uris

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

GENERATION_FAILED = "Failed to generate image"

router = APIRouter()


def get_provider_client(request: Request) -> ProviderClient:
    """Provider client configured for this application."""
    client = getattr(request.app.state, "provider_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Provider client not configured")
    return client


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness probe."""
    return HealthResponse()


@router.get("/test", response_model=BackendTestResponse)
async def backend_test():
    """Connectivity check used by the frontend."""
    return BackendTestResponse()


@router.get("/models", response_model=ModelsResponse)
async def list_models():
    """Model families the frontend can offer."""
    models = []
    for name, profile in PROFILES.items():
        parameters = [
            ParameterInfo(
                key=f.key,
                aliases=list(f.names),
                type=f.kind.value,
                default=f.default,
                min=f.bounds[0] if f.bounds else None,
                max=f.bounds[1] if f.bounds else None,
                choices=list(f.choices),
            )
            for f in profile.fields
        ]
        models.append(ModelInfo(
            name=name.value,
            model_id=profile.model_id,
            max_images=profile.max_images,
            parameters=parameters,
        ))
    return ModelsResponse(models=models, default=DEFAULT_PROFILE.name.value)


@router.post(
    "/generate-image",
    response_model=GenerateImageResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_image(request: Request, client: ProviderClient = Depends(get_provider_client)):
    """
    Generate images from a multipart form.

    Form fields:
    - prompt: Text prompt (required)
    - selectedModel: flux or photomaker (anything else means flux)
    - image: Up to 4 reference images, in order
    - Per-model parameters (numOutputs, aspectRatio, num_steps, seed, ...)

    Stored uploads are deleted before the response is sent, whatever the outcome.
    """
    attachments: List[ImageAttachment] = []
    upload_dir = request.app.state.upload_dir

    try:
        try:
            form = await request.form()
        except (StarletteHTTPException, MultiPartException) as e:
            raise MalformedBodyError(getattr(e, "detail", None) or str(e)) from e

        try:
            # An empty file input is sent as a part with no filename
            uploads = [
                item for item in form.getlist("image")
                if not isinstance(item, str) and item.filename
            ]
            if len(uploads) > MAX_IMAGES:
                raise TooManyImagesError(len(uploads), MAX_IMAGES)

            for upload in uploads:
                try:
                    attachments.append(await save_upload(upload, upload_dir))
                except OSError as e:
                    raise TransportError(f"Failed to store upload: {e}") from e

            raw_fields = {key: value for key, value in form.items() if isinstance(value, str)}
        finally:
            await form.close()

        normalized = await run_in_threadpool(
            normalize_request, raw_fields, attachments, raw_fields.get("selectedModel")
        )

        logger.info(f"Selected Model: {normalized.profile.name.value}")
        logger.info(f"Input to provider: {json.dumps(truncate_data_uris(normalized.input), indent=2)}")

        output = await dispatch(client, normalized.input, normalized.model_id)

        logger.info(f"Output from provider: {output}")
        return GenerateImageResponse(image_urls=output)

    except ValidationError as e:
        logger.warning(f"Rejected request: {e.field}: {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content=error_payload("Invalid request", e.message, field=e.field),
        )
    except UpstreamError as e:
        logger.error(f"Provider error ({e.status_code}): {e.body}")
        return JSONResponse(
            status_code=e.status_code,
            content=error_payload(GENERATION_FAILED, e.body, status=e.status_code),
        )
    except TransportError as e:
        logger.error(f"Generation failed: {e.message}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content=error_payload(GENERATION_FAILED, e.message),
        )
    except Exception as e:
        logger.exception(f"Unexpected error during generation: {e}")
        return JSONResponse(
            status_code=500,
            content=error_payload(GENERATION_FAILED, str(e)),
        )
    finally:
        remove_attachments(attachments)


def create_app(settings: Optional[Settings] = None, client: Optional[ProviderClient] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Process configuration. Loaded from the environment at
            startup when omitted.
        client: Provider client to dispatch through. A ReplicateClient is
            built from the settings at startup when omitted.

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle management."""
        owned_client = None
        if app.state.provider_client is None:
            # Raises ConfigurationError before the server starts accepting requests
            app_settings = app.state.settings or load_settings()
            app.state.settings = app_settings
            owned_client = ReplicateClient(
                api_token=app_settings.api_token,
                base_url=app_settings.api_base_url,
                poll_interval=app_settings.poll_interval,
            )
            app.state.provider_client = owned_client
            logger.info(f"Provider client ready: {app_settings.api_base_url}")

        os.makedirs(app.state.upload_dir, exist_ok=True)
        logger.info(f"Upload directory: {app.state.upload_dir}")

        yield

        if owned_client is not None:
            logger.info("Shutting down - closing provider client...")
            await owned_client.aclose()
            app.state.provider_client = None

    app = FastAPI(
        title="Image Generation API",
        description="Relays image generation requests to hosted flux and photomaker models",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.provider_client = client
    app.state.upload_dir = settings.upload_dir if settings else os.getenv("UPLOAD_DIR", "uploads")

    # CORS middleware for the local frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins if settings else parse_origins(os.getenv("CORS_ORIGINS"))),
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Start the server, exiting before binding the port if misconfigured."""
    import uvicorn

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(e.message)
        sys.exit(1)

    uvicorn.run(
        create_app(settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
