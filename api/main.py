# ============================================================================
# api/main.py
# ============================================================================
"""
FastAPI Backend for the Medical Report Interpreter

Thin HTTP surface over ReportInterpreter. Authentication, uploads/OCR and
persistence are handled by the surrounding application.

Run:
    uvicorn api.main:app --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from medical_interpreter import __version__
from medical_interpreter.config import logging_settings
from medical_interpreter.core.config import get_config
from medical_interpreter.interpretation.service import ReportInterpreter
from medical_interpreter.providers.client import close_transports
from medical_interpreter.providers.registry import ProviderRegistry
from medical_interpreter.utils.exceptions import ConfigurationError, ExhaustionError
from medical_interpreter.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_interpreter() -> ReportInterpreter:
    return ReportInterpreter()


def get_registry() -> ProviderRegistry:
    return ProviderRegistry(get_config())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging at startup and close provider sessions at shutdown."""
    setup_logging(
        level=logging_settings.LOG_LEVEL,
        log_file=logging_settings.LOG_FILE,
        format_json=logging_settings.LOG_JSON,
    )
    status = ProviderRegistry(get_config()).status()
    logger.info(f"Available providers: {', '.join(status['available']) or 'none'}")
    yield
    await close_transports()
    if get_interpreter.cache_info().currsize:
        await get_interpreter().close()


app = FastAPI(
    title="Medical Report Interpreter API",
    description="Multi-provider LLM interpretation of medical lab reports",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_config()["client_origin"]],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Models
# ============================================================================

class InterpretRequest(BaseModel):
    parsed_text: str = Field(default="", description="Text extracted from the uploaded report")
    file_name: Optional[str] = Field(default=None, description="Original upload name")


def _error(status_code: int, message: str, exc: Exception) -> JSONResponse:
    body: Dict[str, Any] = {"message": message}
    if get_config()["dev_mode"]:
        body["details"] = str(exc)
    return JSONResponse(status_code=status_code, content=body)


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


@app.get("/providers/status")
async def providers_status(registry: ProviderRegistry = Depends(get_registry)):
    return registry.status()


@app.post("/interpret")
async def interpret(
    request: InterpretRequest,
    interpreter: ReportInterpreter = Depends(get_interpreter),
):
    """Interpret report text and return the assembled record."""
    if not request.parsed_text or len(request.parsed_text.strip()) < 5:
        return JSONResponse(status_code=400, content={"message": "parsed_text required"})

    try:
        record = await interpreter.interpret(request.parsed_text, request.file_name)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return _error(500, str(e), e)
    except ExhaustionError as e:
        logger.error(f"Providers exhausted: {e}")
        return _error(
            503,
            f"{e.__class__.__name__}: all AI providers failed. "
            "Please check your API keys and try again.",
            e,
        )
    except ValueError as e:
        return JSONResponse(status_code=400, content={"message": str(e)})
    except Exception as e:
        logger.error(f"AI interpretation error: {e}", exc_info=get_config()["dev_mode"])
        return _error(500, "AI interpretation failed", e)

    return record.to_dict()
