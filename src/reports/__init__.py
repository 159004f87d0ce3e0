"""
Report generation pipeline.

Free users get a single JSON preview; premium users get the four-stage
analysis streamed as NDJSON chunks.
"""

from reports.errors import (
    AuthenticationError,
    EntitlementDenied,
    ReportError,
    ReportGenerationFailed,
    ScenarioNotFound,
)
from reports.models import (
    Chunk,
    ChunkType,
    ReportRequest,
    ReportResult,
    Scenario,
    ScenarioBundle,
    StageId,
)
from reports.orchestrator import ReportOrchestrator
from reports.persistence import InMemoryReportStore, ReportGeneration, ReportStore
from reports.service import PreparedReport, ReportService
from reports.stream import (
    ChunkDecoder,
    ReportAccumulator,
    ReportPhase,
    ReportStreamError,
    decode_report_stream,
    encode_chunk,
    encode_stream,
)
from reports.usage import UsageRecorder

__all__ = [
    'AuthenticationError',
    'EntitlementDenied',
    'ReportError',
    'ReportGenerationFailed',
    'ScenarioNotFound',
    'Chunk',
    'ChunkType',
    'ReportRequest',
    'ReportResult',
    'Scenario',
    'ScenarioBundle',
    'StageId',
    'ReportOrchestrator',
    'InMemoryReportStore',
    'ReportGeneration',
    'ReportStore',
    'PreparedReport',
    'ReportService',
    'ChunkDecoder',
    'ReportAccumulator',
    'ReportPhase',
    'ReportStreamError',
    'decode_report_stream',
    'encode_chunk',
    'encode_stream',
    'UsageRecorder',
]
