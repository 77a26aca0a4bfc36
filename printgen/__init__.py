"""Chunked print-ready PDF generation over a remote rendering function."""

from printgen.factory import generator_from_settings
from printgen.pipeline.models import (
    FinalArtifact,
    GenerationJob,
    PhysicalVariant,
    TemplateKind,
)
from printgen.pipeline.orchestrator import DocumentGenerator

__all__ = [
    "DocumentGenerator",
    "FinalArtifact",
    "GenerationJob",
    "PhysicalVariant",
    "TemplateKind",
    "generator_from_settings",
]
