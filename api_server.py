"""FastAPI server exposing the Cashé NLP core to the chat bot adapters."""

from fastapi import FastAPI, HTTPException, Depends, status, Request, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional, Any
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from cashe.agents.nlp_agent import NLPAgent, create_nlp_agent
from cashe.config.ai_config import is_ai_enabled
from cashe.schemas.core import Platform
from cashe.utils.config import settings
from cashe.utils.errors import CasheError
from cashe.utils.logger import chat_label, get_logger

logger = get_logger("api_server")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="NLP command interpreter for the Cashé Telegram and WhatsApp bots",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None
)

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "X-API-Key"],
)

_nlp_agent: Optional[NLPAgent] = None


def get_agent() -> NLPAgent:
    """Shared agent, built on first use against the configured storage backend."""
    global _nlp_agent
    if _nlp_agent is None:
        try:
            _nlp_agent = create_nlp_agent()
        except Exception as e:
            logger.error(f"Error initializing NLP agent: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="NLP agent not available")
    return _nlp_agent


# Pydantic models for request/response

class MessageRequest(BaseModel):
    platform: Platform = Field(..., description="telegram or whatsapp")
    platform_user_id: str = Field(..., min_length=1, description="Sender ID on the platform")
    text: str = Field(..., max_length=2000, description="Message text")


class CallbackRequest(BaseModel):
    platform: Platform = Field(..., description="telegram or whatsapp")
    platform_user_id: str = Field(..., min_length=1, description="Sender ID on the platform")
    token: str = Field(..., min_length=1, max_length=200, description="Button token")


class StandardResponse(BaseModel):
    status: bool
    message: str
    data: Optional[Any] = None


# Exception handler for domain errors
@app.exception_handler(CasheError)
async def cashe_exception_handler(request, exc: CasheError):
    logger.error(f"Cashé error: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code or status.HTTP_400_BAD_REQUEST,
        content={
            "status": False,
            "message": exc.message,
            "data": exc.details or None
        }
    )


# General exception handler
@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": False,
            "message": "An unexpected error occurred",
            "data": None
        }
    )


# Dependency to check API key for protected endpoints
async def verify_api_key(x_api_key: Optional[str] = Header(None)):
    """Verify API key for protected endpoints."""
    if not settings.api_key:
        # No key configured (development)
        return True

    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return True


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name, "version": settings.app_version}


@app.get("/api/info")
async def get_app_info(_: bool = Depends(verify_api_key)):
    """Get application information."""
    return {
        "app_name": settings.app_name,
        "version": settings.app_version,
        "storage_backend": settings.storage_backend,
        "llm_fallback": is_ai_enabled(),
        "default_currency": settings.default_currency,
        "timezone": settings.timezone
    }


# =============================================================================
# NLP ENDPOINTS
# =============================================================================

@app.post("/api/nlp/message")
@limiter.limit(settings.rate_limit)
async def process_message(
    request: Request,
    body: MessageRequest,
    _: bool = Depends(verify_api_key),
    agent: NLPAgent = Depends(get_agent)
) -> StandardResponse:
    """Run one chat message through the NLP core."""
    logger.info(f"📩 Message from {chat_label(body.platform, body.platform_user_id)}")
    result = await agent.process_message(body.platform, body.platform_user_id, body.text)
    return StandardResponse(
        status=True,
        message="Message processed",
        data=result.model_dump(mode="json")
    )


@app.post("/api/nlp/callback")
@limiter.limit(settings.rate_limit)
async def process_callback(
    request: Request,
    body: CallbackRequest,
    _: bool = Depends(verify_api_key),
    agent: NLPAgent = Depends(get_agent)
) -> StandardResponse:
    """Run one button press through the NLP core."""
    logger.info(f"🔘 Callback from {chat_label(body.platform, body.platform_user_id)}")
    result = await agent.process_callback(body.platform, body.platform_user_id, body.token)
    return StandardResponse(
        status=True,
        message="Callback processed",
        data=result.model_dump(mode="json")
    )


@app.post("/api/nlp/cleanup")
async def cleanup_states(
    _: bool = Depends(verify_api_key),
    agent: NLPAgent = Depends(get_agent)
) -> StandardResponse:
    """Sweep expired conversation states."""
    removed = await agent.cleanup_expired_states()
    return StandardResponse(
        status=True,
        message=f"Removed {removed} expired conversation states",
        data={"removed": removed}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
