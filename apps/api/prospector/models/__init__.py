from prospector.models.prospect import Prospect, Activity, PipelineStage, Tier

__all__ = [
    "Prospect",
    "Activity",
    "PipelineStage",
    "Tier",
]
