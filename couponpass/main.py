"""
FastAPI backend for coupon wallet passes.
"""

import logging
from typing import Optional

from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import uvicorn

from .config import Settings, configure_logging
from .errors import PassGenerationError
from .schemas import PassErrorResponse, PassRequest, PassResponse
from .services.pass_service import PassService
from .services.pkpass_creator import PassSigner, PKPassCreator
from .services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to generate pass"


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _failure(status_code: int, error: str, details: Optional[str] = None, **extra) -> JSONResponse:
    content = PassErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def create_app(settings: Optional[Settings] = None, signer: Optional[PassSigner] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted
        signer: Pass signer; an openssl based PKPassCreator when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    if signer is None:
        signer = PKPassCreator(settings.signing_identity())

    pass_service = PassService.from_settings(settings, signer)
    rate_limiter = RateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

    app = FastAPI(
        title="Coupon Pass API",
        description="Generate signed Apple Wallet coupon passes",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.pass_service = pass_service
    app.state.rate_limiter = rate_limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    settings.output_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/passes", StaticFiles(directory=settings.output_dir), name="passes")

    async def generate(request: Request, payload: PassRequest,
                       strip_image: Optional[bytes] = None):
        client_ip = get_client_ip(request)

        if not rate_limiter.is_allowed(client_ip):
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return _failure(
                429, "Too many requests. Please try again later.",
                reset_time=rate_limiter.get_reset_time(client_ip),
            )

        base_url = settings.public_base_url or str(request.base_url)
        logger.info(
            f"Generating pass for {client_ip}: discount={payload.discount!r}, "
            f"image={'yes' if strip_image or payload.strip_image else 'no'}"
        )

        try:
            result = await run_in_threadpool(pass_service.generate, payload, base_url, strip_image)
        except PassGenerationError as e:
            logger.error(f"Pass generation failed: {e}")
            return _failure(500, FAILURE_MESSAGE, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error generating pass: {e}")
            return _failure(500, FAILURE_MESSAGE, str(e))

        return PassResponse(pass_url=result.pass_url, pass_id=result.pass_id)

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {"status": "healthy", "service": "Coupon Pass API"}

    @app.get("/api/health")
    async def health_check():
        """Detailed health check"""
        return {
            "status": "healthy",
            "services": {
                "signing": getattr(signer, "configured", True),
                "rate_limit": rate_limiter.enabled,
            }
        }

    @app.post("/generate-pass", response_model=PassResponse)
    async def generate_pass(request: Request, payload: PassRequest):
        """Generate a pass from a JSON body; stripImage is base64 encoded"""
        return await generate(request, payload)

    @app.post("/generate-pass/upload", response_model=PassResponse)
    async def generate_pass_upload(
        request: Request,
        discount: str = Form(...),
        service_type: Optional[str] = Form(None, alias="serviceType"),
        expiry_date: Optional[str] = Form(None, alias="expiryDate"),
        background_color: Optional[str] = Form(None, alias="backgroundColor"),
        strip_image: Optional[UploadFile] = File(None, alias="stripImage"),
    ):
        """Generate a pass from multipart form data with the strip image as a file"""
        payload = PassRequest(
            discount=discount,
            service_type=service_type,
            expiry_date=expiry_date,
            background_color=background_color,
        )
        image_bytes = await strip_image.read() if strip_image is not None else None
        return await generate(request, payload, image_bytes or None)

    return app


_app: Optional[FastAPI] = None


def __getattr__(name: str):
    # `couponpass.main:app` is built from the environment on first access
    global _app
    if name == "app":
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    _settings = Settings.from_env()
    configure_logging(_settings.log_level)
    uvicorn.run(
        "couponpass.main:create_app",
        factory=True,
        host=_settings.host,
        port=_settings.port,
        log_level=_settings.log_level.lower()
    )
