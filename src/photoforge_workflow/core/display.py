from __future__ import annotations

from photoforge_workflow.core.job import JobStatus

STAGE_LABELS = {
    "uploading": "Uploading images to cloud...",
    "aligning": "Aligning images...",
    "reconstructing": "Reconstructing 3D structure...",
    "meshing": "Generating 3D mesh...",
    "texturing": "Applying textures...",
    "finalizing": "Finalizing output...",
}

STATUS_LABELS = {
    JobStatus.PROCESSING: "Processing 3D Model",
    JobStatus.COMPLETED: "Processing Complete!",
    JobStatus.FAILED: "Processing Failed",
    JobStatus.IDLE: "Ready to Process",
}


def describe_stage(stage: str) -> str:
    """Friendly text for known stage tokens; unknown tokens are shown as sent."""
    return STAGE_LABELS.get(stage.strip().lower(), stage)


def describe_status(status: JobStatus) -> str:
    return STATUS_LABELS[status]


def format_file_size(num_bytes: int | None) -> str:
    if not num_bytes:
        return "N/A"
    mb = num_bytes / (1024 * 1024)
    if mb > 1024:
        return f"{mb / 1024:.2f} GB"
    return f"{mb:.2f} MB"


def format_poly_count(count: int | None) -> str:
    if not count:
        return "N/A"
    if count > 1_000_000:
        return f"{count / 1_000_000:.2f}M"
    if count > 1000:
        return f"{count / 1000:.2f}K"
    return str(count)
