"""
Services for the overlay pipeline.

Includes:
- Admission (asset validation, upload storage)
- Media inspection and overlay planning
- Bounded FFmpeg execution and artifact cleanup
"""

from app.services.artifact_lifecycle import OverlayJob
from app.services.asset_validator import AssetRole, AssetValidator, UploadedAsset
from app.services.media_prober import MediaMetadata, MediaProber
from app.services.overlay_pipeline import JobResult, OverlayPipeline, OverlayRequest
from app.services.overlay_planner import OverlayPlan, OverlayPlanner, OverlayPosition
from app.services.process_runner import ProcessResult, run_process
from app.services.transcode_executor import TranscodeExecutor

__all__ = [
    # Admission
    "AssetRole",
    "AssetValidator",
    "UploadedAsset",
    # Inspection / planning
    "MediaMetadata",
    "MediaProber",
    "OverlayPlan",
    "OverlayPlanner",
    "OverlayPosition",
    # Execution
    "ProcessResult",
    "run_process",
    "TranscodeExecutor",
    # Orchestration
    "OverlayJob",
    "OverlayRequest",
    "JobResult",
    "OverlayPipeline",
]
