"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import date
from typing import Any, Optional

import pytest

from tirehealth.config import OrchestratorSettings
from tirehealth.decoders import decode_tread_depth
from tirehealth.exceptions import TransientProviderError
from tirehealth.jobs import JobRegistry, ModelGenerationOrchestrator, ReconstructionProvider
from tirehealth.models.signals import (
    DefectSeverity,
    DefectType,
    DotCodeInfo,
    TireDefect,
    TireSizeInfo,
    TreadDepthMeasurement,
)
from tirehealth.notifications import RecordingNotifier
from tirehealth.storage import InMemoryAnalysisStore


# Reference "today" for every age computation in the tests
AS_OF = date(2025, 6, 1)


class ScriptedProvider(ReconstructionProvider):
    """
    Provider that replays scripted results.

    submit_script items are task ids or exceptions to raise; poll_script
    items are responses or exceptions, the last one repeating forever.
    """

    def __init__(
        self,
        submit_script: Optional[list[Any]] = None,
        poll_script: Optional[list[Any]] = None,
        submit_delay: float = 0.0,
    ):
        self.submit_script = list(submit_script or ["task-1"])
        self.poll_script = list(poll_script or [{"status": "running"}])
        self.submit_delay = submit_delay
        self.submit_calls = 0
        self.poll_calls = 0

    async def submit_job(self, image_path: str) -> str:
        self.submit_calls += 1
        await asyncio.sleep(self.submit_delay)
        item = self.submit_script.pop(0) if len(self.submit_script) > 1 else self.submit_script[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def poll_job(self, external_job_id: str) -> Any:
        self.poll_calls += 1
        await asyncio.sleep(0)
        item = self.poll_script.pop(0) if len(self.poll_script) > 1 else self.poll_script[0]
        if isinstance(item, Exception):
            raise item
        return item


def make_tread(
    inner: float,
    center: Optional[float] = None,
    outer: Optional[float] = None,
    confidence: float = 0.9,
) -> TreadDepthMeasurement:
    """Decode a tread reading; center/outer default to inner."""
    center = inner if center is None else center
    outer = inner if outer is None else outer
    return decode_tread_depth({
        "inner": inner,
        "center": center,
        "outer": outer,
        "unit": "mm",
        "confidence": confidence,
        "quality_score": 90,
    })


def make_dot(age_in_months: int, confidence: float = 0.9) -> DotCodeInfo:
    return DotCodeInfo(
        full_dot_code="DOT 3DXX XXXX 2419",
        plant_code="3D",
        size_code="XX",
        brand_code="XXXX",
        manufacture_week=19,
        manufacture_year=2024,
        age_in_months=age_in_months,
        confidence=confidence,
    )


def make_defect(
    defect_type: DefectType = DefectType.CRACK,
    severity: DefectSeverity = DefectSeverity.MEDIUM,
    confidence: float = 0.9,
) -> TireDefect:
    return TireDefect(
        defect_type=defect_type,
        severity=severity,
        confidence=confidence,
        description=f"{defect_type.display_name} detected",
    )


@pytest.fixture
def tread_factory():
    return make_tread


@pytest.fixture
def dot_factory():
    return make_dot


@pytest.fixture
def defect_factory():
    return make_defect


@pytest.fixture
def size_info() -> TireSizeInfo:
    """A decoded 225/45R17 94W tire."""
    return TireSizeInfo(
        raw_text="225/45R17 94W",
        width=225,
        aspect_ratio=45,
        construction="R",
        rim_diameter=17,
        load_index=94,
        speed_rating="W",
        confidence=0.92,
    )


@pytest.fixture
def new_tread() -> TreadDepthMeasurement:
    """Near-new, evenly worn tread."""
    return make_tread(7.0)


@pytest.fixture
def new_dot() -> DotCodeInfo:
    """A 10-month-old tire."""
    return make_dot(10)


@pytest.fixture
def fast_settings() -> OrchestratorSettings:
    """Orchestrator settings without any real waiting."""
    return OrchestratorSettings(
        poll_interval_seconds=0.0,
        max_retries=120,
        submit_attempts=3,
        submit_retry_wait_seconds=0.0,
    )


@pytest.fixture
def store() -> InMemoryAnalysisStore:
    return InMemoryAnalysisStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def provider_factory():
    """Build a ScriptedProvider."""
    return ScriptedProvider


@pytest.fixture
def orchestrator_factory(fast_settings, store, notifier):
    """Build an orchestrator around a provider with fast settings."""
    def factory(provider: ReconstructionProvider, **overrides) -> ModelGenerationOrchestrator:
        settings = fast_settings.model_copy(update=overrides) if overrides else fast_settings
        return ModelGenerationOrchestrator(
            provider=provider,
            registry=JobRegistry(),
            store=store,
            notifier=notifier,
            settings=settings,
        )
    return factory


@pytest.fixture
def transient_error():
    return TransientProviderError("503 Service Unavailable")


@pytest.fixture
def as_of() -> date:
    """Reference date for tire age computations."""
    return AS_OF
