"""
FastAPI server for the tire health engine.

Exposes assessment of recognition output and the model generation
job lifecycle (submit, poll, cancel) over REST.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from tirehealth import __version__
from tirehealth.config import (
    LOAD_INDEX_TABLE,
    LOOKUP_TABLE_VERSION,
    SPEED_RATING_TABLE,
    OrchestratorSettings,
)
from tirehealth.engine import TireHealthEngine
from tirehealth.exceptions import JobNotFoundError
from tirehealth.jobs import ModelGenerationOrchestrator, SimulatedReconstructionProvider
from tirehealth.models.analysis import ComprehensiveTireAnalysis
from tirehealth.models.inputs import RecognitionOutput
from tirehealth.models.jobs import ModelGenerationJob
from tirehealth.notifications import LoggingNotifier
from tirehealth.storage import AnalysisStore, InMemoryAnalysisStore

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response model."""
    detail: str


class ModelJobRequest(BaseModel):
    """Request body for starting model generation."""
    image_path: Optional[str] = None


class CancelResponse(BaseModel):
    cancelled_job_ids: list[str]


def create_app(
    store: Optional[AnalysisStore] = None,
    orchestrator: Optional[ModelGenerationOrchestrator] = None,
) -> FastAPI:
    """
    Build the API around a store and an orchestrator.

    Defaults to in-memory storage and the simulated 3D provider.
    """
    store = store if store is not None else InMemoryAnalysisStore()
    notifier = LoggingNotifier()
    engine = TireHealthEngine(store=store, notifier=notifier)
    if orchestrator is None:
        orchestrator = ModelGenerationOrchestrator(
            provider=SimulatedReconstructionProvider(),
            store=store,
            notifier=notifier,
            settings=OrchestratorSettings.from_env(),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await orchestrator.close()

    app = FastAPI(
        title="Tire Health API",
        description="""
        Tire health assessment from recognition output.

        Scores tread, defect and age signals into one verdict with a
        prioritized service plan, and tracks 3D model generation jobs.
        """,
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store
    app.state.engine = engine
    app.state.orchestrator = orchestrator

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Check if the API is running."""
        return HealthResponse(status="healthy", version=__version__)

    @app.get("/example", response_model=RecognitionOutput, tags=["Reference"])
    async def get_example():
        """Get an example recognition output."""
        return RecognitionOutput.example()

    @app.get("/lookup-tables", tags=["Reference"])
    async def lookup_tables():
        """Load index and speed rating tables used for size decoding."""
        return {
            "version": LOOKUP_TABLE_VERSION,
            "load_index_kg": {str(k): v for k, v in LOAD_INDEX_TABLE.items()},
            "speed_rating_kmh": SPEED_RATING_TABLE,
        }

    @app.post("/assess", response_model=ComprehensiveTireAnalysis, tags=["Assessment"])
    async def assess_capture(capture: RecognitionOutput):
        """
        Assess one tire capture.

        Always returns an analysis; unreadable parts show up as
        low-confidence signals rather than errors.
        """
        try:
            return engine.assess_capture(capture)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.exception("Assessment failed")
            raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")

    @app.get(
        "/analyses/{analysis_id}",
        response_model=ComprehensiveTireAnalysis,
        responses={404: {"model": ErrorResponse}},
        tags=["Assessment"],
    )
    async def get_analysis(analysis_id: str):
        """Fetch a stored analysis."""
        analysis = store.get_analysis(analysis_id)
        if analysis is None:
            raise HTTPException(status_code=404, detail=f"Analysis '{analysis_id}' not found.")
        return analysis

    @app.post(
        "/analyses/{analysis_id}/model-jobs",
        response_model=ModelGenerationJob,
        responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
        tags=["3D Models"],
    )
    async def submit_model_job(analysis_id: str, request: Optional[ModelJobRequest] = None):
        """
        Start 3D model generation for an analysis.

        Idempotent: returns the active job if one is already running.
        A job left processing is polled in the background until terminal.
        """
        analysis = store.get_analysis(analysis_id)
        if analysis is None:
            raise HTTPException(status_code=404, detail=f"Analysis '{analysis_id}' not found.")

        image_path = (
            (request.image_path if request else None)
            or analysis.tread_image_path
            or analysis.sidewall_image_path
        )
        if not image_path:
            raise HTTPException(status_code=400, detail="No image available for this analysis.")

        job = await orchestrator.submit(analysis_id, image_path)
        if analysis.generation_job_id != job.id:
            store.save_analysis(analysis.with_generation_job(job.id))
        if job.is_active:
            orchestrator.start_polling(job.id)
        return job

    @app.get(
        "/model-jobs/{job_id}",
        response_model=ModelGenerationJob,
        responses={404: {"model": ErrorResponse}},
        tags=["3D Models"],
    )
    async def get_model_job(job_id: str):
        """Current state of a model generation job."""
        try:
            return orchestrator.get_job(job_id)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.post(
        "/model-jobs/{job_id}/poll",
        response_model=ModelGenerationJob,
        responses={404: {"model": ErrorResponse}},
        tags=["3D Models"],
    )
    async def poll_model_job(job_id: str):
        """Poll the provider once for a job."""
        try:
            return await orchestrator.poll(job_id)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.delete(
        "/analyses/{analysis_id}/model-jobs",
        response_model=CancelResponse,
        tags=["3D Models"],
    )
    async def abandon_model_jobs(analysis_id: str):
        """Stop background polling for an analysis; job status is unchanged."""
        return CancelResponse(cancelled_job_ids=orchestrator.abandon(analysis_id))

    return app


app = create_app()
