"""
Model generation job orchestration.

Tracks asynchronous 3D reconstruction requests against an external
provider: submit, poll, retry, terminal state.
"""

from tirehealth.jobs.orchestrator import ModelGenerationOrchestrator
from tirehealth.jobs.provider import (
    ProviderOutcome,
    ProviderState,
    ReconstructionProvider,
    SimulatedReconstructionProvider,
    parse_provider_response,
)
from tirehealth.jobs.registry import JobRegistry

__all__ = [
    "ModelGenerationOrchestrator",
    "JobRegistry",
    "ReconstructionProvider",
    "SimulatedReconstructionProvider",
    "ProviderOutcome",
    "ProviderState",
    "parse_provider_response",
]
