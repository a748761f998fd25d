from .job_lifecycle import CancelImageJob, EnqueueImageJob, RestartImageJob
from .process_pipeline import PipelineResult, ProcessImagePipeline
from .upload_image import UploadImage, UploadImageRequest

__all__ = [
    "CancelImageJob",
    "EnqueueImageJob",
    "RestartImageJob",
    "PipelineResult",
    "ProcessImagePipeline",
    "UploadImage",
    "UploadImageRequest",
]
