from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from photoforge_workflow.core.validation import ValidationIssue

QUALITIES = ("low", "medium", "high", "ultra")
OUTPUT_TYPES = ("mesh", "orthomosaic", "point_cloud", "dem")
MESH_FORMATS = ("obj", "fbx", "ply", "stl")
POINT_CLOUD_FORMATS = ("las", "laz", "ply")
ORTHOMOSAIC_FORMATS = ("geotiff", "jpg", "png")


@dataclass
class ProcessingSettings:
    quality: str = "high"
    output_types: list[str] = field(default_factory=lambda: ["mesh", "orthomosaic", "point_cloud"])
    mesh_format: str = "obj"
    point_cloud_format: str = "las"
    orthomosaic_format: str = "geotiff"
    coordinate_system: str = "WGS84"
    use_gcp: bool = False
    gcp_file: str = ""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "quality": self.quality,
            "output_types": [t for t in OUTPUT_TYPES if t in self.output_types],
            "formats": {
                "mesh": self.mesh_format,
                "point_cloud": self.point_cloud_format,
                "orthomosaic": self.orthomosaic_format,
            },
            "coordinate_system": self.coordinate_system,
            "use_gcp": self.use_gcp,
        }
        if self.gcp_file.strip():
            payload["gcp_file"] = self.gcp_file.strip()
        return payload


def validate_processing_settings(settings: ProcessingSettings) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not settings.output_types:
        issues.append(ValidationIssue("output_types", "Please select at least one output type."))
    unknown = [t for t in settings.output_types if t not in OUTPUT_TYPES]
    if unknown:
        issues.append(ValidationIssue("output_types", f"Unknown output type(s): {', '.join(unknown)}."))

    if settings.quality not in QUALITIES:
        issues.append(ValidationIssue("quality", f"Quality must be one of: {', '.join(QUALITIES)}."))
    if settings.mesh_format not in MESH_FORMATS:
        issues.append(ValidationIssue("mesh_format", f"Mesh format must be one of: {', '.join(MESH_FORMATS)}."))
    if settings.point_cloud_format not in POINT_CLOUD_FORMATS:
        issues.append(
            ValidationIssue(
                "point_cloud_format",
                f"Point cloud format must be one of: {', '.join(POINT_CLOUD_FORMATS)}.",
            )
        )
    if settings.orthomosaic_format not in ORTHOMOSAIC_FORMATS:
        issues.append(
            ValidationIssue(
                "orthomosaic_format",
                f"Orthomosaic format must be one of: {', '.join(ORTHOMOSAIC_FORMATS)}.",
            )
        )

    if not settings.coordinate_system.strip():
        issues.append(ValidationIssue("coordinate_system", "Coordinate system required."))
    if settings.use_gcp and not settings.gcp_file.strip():
        issues.append(ValidationIssue("gcp_file", "Ground control point file required when GCPs are enabled."))

    return issues
