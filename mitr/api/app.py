"""
HTTP surface: one POST route per pipeline flow.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import CRISIS_RESOURCES, get_config
from ..errors import CriticalStageFailure, MitrError, ModelCallError, ValidationError
from ..pipeline.orchestrator import MitrOrchestrator
from ..pipeline.prompts import MitrPrompts
from ..pipeline.schemas import MitrModel, validate_input
from ..pipeline.sentiment import SentimentAnalyzer

logger = logging.getLogger("api")


class SentimentRequest(MitrModel):
    text: str


def _dump(result) -> Dict[str, Any]:
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


def create_app(orchestrator: Optional[MitrOrchestrator] = None,
               config=None,
               sentiment_analyzer: Optional[SentimentAnalyzer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Without an explicit orchestrator one is built from ``config`` (or the
    environment), talking to Vertex AI.
    """
    if orchestrator is None:
        orchestrator = MitrOrchestrator.from_config(config or get_config())

    app = FastAPI(title="Mitr Therapeutic Pipeline API", version=__version__)
    app.state.orchestrator = orchestrator
    app.state.sentiment_analyzer = sentiment_analyzer or SentimentAnalyzer()

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        logger.info("Rejected %s: %s", request.url.path, exc)
        return JSONResponse(status_code=422, content={"error": "validation_error", **exc.to_dict()})

    @app.exception_handler(CriticalStageFailure)
    async def critical_failure(request: Request, exc: CriticalStageFailure):
        logger.error("Critical stage failure on %s: %s", request.url.path, exc)
        content = {
            "error": "critical_stage_failure",
            "stage": exc.stage,
            "message": MitrPrompts.fallback_messages()["request_failed"],
            "crisisResources": [],
        }
        screen = exc.crisis_screen
        if screen is not None:
            content["crisisScreen"] = screen.to_dict()
            if screen.flagged:
                content["crisisResources"] = list(CRISIS_RESOURCES)
        return JSONResponse(status_code=503, content=content)

    @app.exception_handler(MitrError)
    async def pipeline_error(request: Request, exc: MitrError):
        logger.error("Pipeline error on %s: %s", request.url.path, exc)
        error = "model_call_error" if isinstance(exc, ModelCallError) else "pipeline_error"
        return JSONResponse(status_code=502, content={
            "error": error,
            "message": MitrPrompts.fallback_messages()["request_failed"],
        })

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "mitr", "version": __version__}

    @app.get("/metrics")
    async def metrics():
        return app.state.orchestrator.get_metrics()

    @app.post("/v1/fast")
    async def fast(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.process_fast(payload))

    @app.post("/v1/comprehensive")
    async def comprehensive(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.process_comprehensive(payload))

    @app.post("/v1/emotions")
    async def emotions(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.analyze_emotions(payload))

    @app.post("/v1/wearables")
    async def wearables(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.analyze_wearables(payload))

    @app.post("/v1/context")
    async def context(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.manage_context(payload))

    @app.post("/v1/context-aware-response")
    async def context_aware_response(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.context_aware_response(payload))

    @app.post("/v1/avatar")
    async def avatar(payload: Any = Body(...)):
        return _dump(await app.state.orchestrator.generate_avatar(payload))

    @app.post("/v1/sentiment")
    async def sentiment(payload: Any = Body(...)):
        request = validate_input(SentimentRequest, payload)
        return app.state.sentiment_analyzer.analyze_text(request.text).to_dict()

    return app
