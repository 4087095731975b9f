"""
Which conversion jobs a freshly created document version needs, and how they
are keyed, tagged and queued.

    slides + Keynote MIME        → convert-keynote-to-pdf
    docs / other slides          → convert-files-to-pdf
    cad                          → convert-cad-to-pdf
    video (non-mp4 video/*)      → process-video
    pdf                          → convert-pdf-to-image-route
    everything else              → nothing
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..documents import types as doc_types
from .jobs import (
    CONVERT_CAD_TO_PDF,
    CONVERT_FILES_TO_PDF,
    CONVERT_KEYNOTE_TO_PDF,
    CONVERT_PDF_TO_IMAGE,
    PROCESS_VIDEO,
    JobDispatcher,
    TaskOptions,
    conversion_queue,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionTask:
    kind: str
    suffix: str  # idempotency key suffix, unique per purpose


KEYNOTE = ConversionTask(CONVERT_KEYNOTE_TO_PDF, "keynote")
OFFICE = ConversionTask(CONVERT_FILES_TO_PDF, "docs")
CAD = ConversionTask(CONVERT_CAD_TO_PDF, "cad")
VIDEO = ConversionTask(PROCESS_VIDEO, "video")
PDF_TO_IMAGE = ConversionTask(CONVERT_PDF_TO_IMAGE, "pdf")


def select_conversion_tasks(doc_type: Optional[str], content_type: Optional[str]) -> list[ConversionTask]:
    tasks = []

    if doc_type == doc_types.SLIDES and content_type in doc_types.KEYNOTE_CONTENT_TYPES:
        tasks.append(KEYNOTE)
    elif doc_type in (doc_types.DOCS, doc_types.SLIDES):
        tasks.append(OFFICE)

    if doc_type == doc_types.CAD:
        tasks.append(CAD)

    if (
        doc_type == doc_types.VIDEO
        and content_type != "video/mp4"
        and (content_type or "").startswith("video/")
    ):
        tasks.append(VIDEO)

    if doc_type == doc_types.PDF:
        tasks.append(PDF_TO_IMAGE)

    return tasks


def idempotency_key(team_id: str, version_id: str, suffix: str) -> str:
    return f"{team_id}-{version_id}-{suffix}"


def build_task_options(
    team_id: str,
    document_id: str,
    version_id: str,
    plan: Optional[str],
    suffix: str,
) -> TaskOptions:
    return TaskOptions(
        idempotency_key=idempotency_key(team_id, version_id, suffix),
        tags=[f"team_{team_id}", f"document_{document_id}", f"version:{version_id}"],
        queue=conversion_queue(plan),
        concurrency_key=team_id,
    )


def build_payload(
    task: ConversionTask,
    team_id: str,
    document_id: str,
    version_id: str,
    key: str,
    file_size: Optional[int] = None,
) -> dict:
    payload = {
        "documentId": document_id,
        "documentVersionId": version_id,
        "teamId": team_id,
    }
    if task.kind == PROCESS_VIDEO:
        segments = key.split("/")
        payload.update({
            "videoUrl": key,
            "docId": segments[1] if len(segments) > 1 else "",
            "fileSize": file_size or 0,
        })
    return payload


async def dispatch_conversions(
    dispatcher: JobDispatcher,
    *,
    team_id: str,
    plan: Optional[str],
    document_id: str,
    version_id: str,
    doc_type: Optional[str],
    content_type: Optional[str],
    key: str,
    file_size: Optional[int] = None,
) -> list[str]:
    """
    Submit every conversion task the version needs. Returns the task kinds
    submitted. The first submission error propagates to the caller.
    """
    submitted = []
    for task in select_conversion_tasks(doc_type, content_type):
        options = build_task_options(team_id, document_id, version_id, plan, task.suffix)
        payload = build_payload(task, team_id, document_id, version_id, key, file_size)
        await dispatcher.submit(task.kind, payload, options)
        submitted.append(task.kind)
    return submitted
