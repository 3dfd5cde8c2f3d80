# Pipeline orchestration exports
from .deps import PipelineDeps, StageConfigurationError, Ingestor, Clusterer, Summarizer
from .orchestrator import PipelineOrchestrator

__all__ = [
    "PipelineDeps",
    "StageConfigurationError",
    "Ingestor",
    "Clusterer",
    "Summarizer",
    "PipelineOrchestrator",
]
