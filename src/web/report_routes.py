"""
Report API Routes

- POST /reports              : generate a report (JSON preview or NDJSON stream)
- GET  /reports/eligibility  : can the caller generate a report right now?

Access control:
- free: one lifetime preview, returned as a single JSON document
- premium/lifetime: monthly allowance of full reports, streamed as NDJSON
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from reports.errors import ReportError, ReportGenerationFailed
from reports.models import ReportRequest
from reports.service import ReportService
from reports.stream import NDJSON_MEDIA_TYPE, STREAM_HEADERS, encode_stream
from services.identity import AuthenticatedUser
from web.dependencies import get_current_user, get_report_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("")
async def generate_report(
    payload: Optional[ReportRequest] = Body(default=None),
    user: AuthenticatedUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
):
    """
    Generate a report for the authenticated user.

    Free users get the preview as one JSON body. Premium users get a
    chunked ``application/x-ndjson`` stream; once it starts, only the
    stream's own complete/error chunks report the outcome.
    """
    try:
        prepared = await service.prepare(user, payload)
        if not prepared.is_premium:
            result = await service.generate_preview(prepared)
            return JSONResponse(result.to_wire())
    except ReportError:
        raise
    except Exception as e:
        logger.exception("Report generation failed before streaming")
        raise ReportGenerationFailed() from e

    logger.info(
        "Streaming premium report",
        extra={'extra_data': {
            'user_id': user.id,
            'reports_used': prepared.decision.reports_used,
            'comparisons': len(prepared.bundle.comparisons),
        }}
    )
    return StreamingResponse(
        encode_stream(service.stream(prepared)),
        media_type=NDJSON_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )


@router.get("/eligibility")
async def report_eligibility(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service),
) -> Dict[str, Any]:
    """Non-throwing eligibility summary for the report button."""
    return await service.check_eligibility(user)
