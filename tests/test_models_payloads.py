from __future__ import annotations

import pytest

from photoforge_workflow.core.job import JobStatus, JobUpdate, ProcessingJob
from photoforge_workflow.core.models import MediaFile, ProcessedModel, Project, ProjectDetail
from photoforge_workflow.util.errors import RemoteRequestError


def test_media_file_accepts_camel_case_and_metadata_exif() -> None:
    media = MediaFile.from_payload(
        {
            "_id": "m1",
            "fileUrl": "https://cdn.example/a.jpg",
            "projectId": "proj-2",
            "metadata": {"width": 4000, "height": "3000", "exif": {"GPSLatitude": 1.5}},
            "createdAt": "2024-05-01T12:30:00.000Z",
        },
        project_id="fallback",
    )
    assert media.id == "m1"
    assert media.project_id == "proj-2"
    assert (media.width, media.height) == (4000, 3000)
    assert media.has_gps is True
    assert media.created_at is not None and media.created_at.year == 2024


def test_media_file_without_url_is_rejected() -> None:
    with pytest.raises(RemoteRequestError):
        MediaFile.from_payload({"id": "m1"})


def test_processed_model_falls_back_to_output_url_for_mesh() -> None:
    model = ProcessedModel.from_payload(
        {
            "id": "model-1",
            "model_type": "mesh",
            "output_url": "https://cdn.example/model.obj",
            "download_urls": {"pointCloud": "https://cdn.example/cloud.las"},
            "poly_count": "1250000",
        }
    )
    assert model.name == "mesh"
    assert model.download_urls.available() == {
        "mesh": "https://cdn.example/model.obj",
        "point_cloud": "https://cdn.example/cloud.las",
    }
    assert model.poly_count == 1_250_000


def test_project_defaults_flight_settings() -> None:
    project = Project.from_payload({"id": "p1", "name": "Dam"})
    assert project.flight_settings.altitude == 100
    assert project.flight_settings.overlap_pct == 70
    assert project.status == "active"


@pytest.mark.parametrize(
    "token,expected",
    [
        ("completed", JobStatus.COMPLETED),
        ("Success", JobStatus.COMPLETED),
        ("failed", JobStatus.FAILED),
        ("error", JobStatus.FAILED),
        ("queued", JobStatus.PROCESSING),
        ("", JobStatus.PROCESSING),
        (None, JobStatus.PROCESSING),
    ],
)
def test_status_tokens(token: object, expected: JobStatus) -> None:
    assert JobStatus.from_token(token) == expected


def test_job_update_clamps_progress() -> None:
    assert JobUpdate.from_payload("j", {"status": "processing", "progress": 140}).progress_pct == 100.0
    assert JobUpdate.from_payload("j", {"status": "processing", "progress": -3}).progress_pct == 0.0
    assert JobUpdate.from_payload("j", {"status": "processing", "progress": "abc"}).progress_pct == 0.0


def test_job_progress_is_monotonic_and_terminal_is_final() -> None:
    job = ProcessingJob(job_id="j", status=JobStatus.PROCESSING)
    job.apply(JobUpdate(job_id="j", status=JobStatus.PROCESSING, progress_pct=60, stage="meshing"))
    job.apply(JobUpdate(job_id="j", status=JobStatus.PROCESSING, progress_pct=40))
    assert job.progress_pct == 60
    assert job.stage == "meshing"

    job.apply(JobUpdate(job_id="j", status=JobStatus.FAILED, progress_pct=60, message="GPU node lost"))
    job.apply(JobUpdate(job_id="j", status=JobStatus.COMPLETED, progress_pct=100))
    assert job.status == JobStatus.FAILED
    assert job.error_message == "GPU node lost"
    assert job.polls == 3


def test_project_detail_accepts_camel_case_lists_and_skips_junk() -> None:
    detail = ProjectDetail.from_payload(
        {
            "project": {"id": "p1", "name": "Dam"},
            "mediaFiles": [{"id": "m1", "fileUrl": "https://cdn.example/a.jpg"}, "junk"],
            "processedModels": [{"id": "model-1"}],
        }
    )
    assert [m.project_id for m in detail.media] == ["p1"]
    assert [m.id for m in detail.models] == ["model-1"]


def test_project_detail_without_project_is_rejected() -> None:
    with pytest.raises(RemoteRequestError):
        ProjectDetail.from_payload({"media_files": []})
