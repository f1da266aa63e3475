"""Export API endpoint - synchronous video export."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from export_service.config import Settings, get_settings
from export_service.exceptions import ExportError
from export_service.middleware.request_context import create_request_context
from export_service.render.pipeline import ExportPipeline
from export_service.schemas.export import ErrorResponse, ExportRequest, ExportResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def get_export_pipeline(settings: Annotated[Settings, Depends(get_settings)]) -> ExportPipeline:
    """Build a fresh pipeline per request; pipelines hold per-run state."""
    return ExportPipeline(settings)


ExportPipelineDep = Annotated[ExportPipeline, Depends(get_export_pipeline)]


@router.post(
    "/export-video",
    response_model=ExportResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def export_video(export_request: ExportRequest, pipeline: ExportPipelineDep) -> ExportResponse:
    """
    Render the requested slideshow and return it as a data URI.

    Runs the whole pipeline before responding; no partial video is ever returned.
    """
    context = create_request_context()
    logger.info(
        f"[EXPORT] {context.request_id} received: {len(export_request.image_list)} images, "
        f"{len(export_request.script)} captions"
    )

    try:
        result = await pipeline.run(export_request, request_id=context.request_id)
    except ExportError as e:
        e.request_id = context.request_id
        raise

    return ExportResponse(
        result=result.data_uri,
        request_id=context.request_id,
        processing_time_ms=context.processing_time_ms,
    )
