"""Verification pipeline exports."""

from .definitions import (
    PipelineConfigError,
    StepDefinition,
    SubsystemDefinition,
    default_subsystems,
    load_subsystems,
)
from .pipeline import (
    SubsystemResult,
    VerificationPipeline,
    VerificationResult,
    VerificationStepResult,
    truncate_output,
)

__all__ = [
    "PipelineConfigError",
    "StepDefinition",
    "SubsystemDefinition",
    "SubsystemResult",
    "VerificationPipeline",
    "VerificationResult",
    "VerificationStepResult",
    "default_subsystems",
    "load_subsystems",
    "truncate_output",
]
