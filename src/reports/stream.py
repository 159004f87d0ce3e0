"""
NDJSON report stream.

Encoding: one JSON object per line, UTF-8, terminated by a single newline.
Decoding: fragments may split or coalesce lines anywhere, including inside
a multi-byte character; malformed lines are logged and skipped.
"""

import codecs
import json
import logging
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from reports.models import STAGE_SCHEMAS, Chunk, ChunkType, ReportResult, StageId

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


# =============================================================================
# ENCODING
# =============================================================================

def encode_chunk(chunk: Chunk) -> bytes:
    """Serialize one chunk as a single NDJSON line."""
    # json.dumps escapes control characters, so the only raw newline is the terminator
    return (json.dumps(chunk.to_wire(), ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


async def encode_stream(chunks: AsyncIterable[Chunk]) -> AsyncIterator[bytes]:
    """Encode chunks as they are produced, one line per write."""
    async for chunk in chunks:
        yield encode_chunk(chunk)


# =============================================================================
# DECODING
# =============================================================================

class ChunkDecoder:
    """Incremental NDJSON decoder for the report stream."""

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.skipped_lines = 0

    def feed(self, fragment: Union[bytes, str]) -> List[Chunk]:
        """Append a fragment and return every chunk completed by it."""
        if isinstance(fragment, (bytes, bytearray)):
            text = self._utf8.decode(bytes(fragment))
        else:
            text = fragment
        self._buffer += text

        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [chunk for chunk in (self._parse(line) for line in lines) if chunk is not None]

    def close(self) -> List[Chunk]:
        """Flush the decoder and make one final attempt at the remainder."""
        self._buffer += self._utf8.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        chunk = self._parse(remainder)
        return [chunk] if chunk is not None else []

    def _parse(self, line: str) -> Optional[Chunk]:
        line = line.strip()
        if not line:
            return None
        try:
            return Chunk.model_validate(json.loads(line))
        except (json.JSONDecodeError, ValidationError) as e:
            self.skipped_lines += 1
            logger.warning(
                "Skipping malformed report stream line",
                extra={'extra_data': {'error': str(e), 'line': line[:200]}}
            )
            return None


class ReportPhase(str, Enum):
    """Progress indicator for the consuming UI."""
    ANALYZING = "analyzing"
    OPTIMIZING = "optimizing"
    BUILDING_ROADMAP = "building-roadmap"
    COMPLETE = "complete"
    ERROR = "error"


# Receiving these stages moves the UI on
PHASE_AFTER_STAGE = {
    StageId.PROFILE_SYNTHESIS: ReportPhase.OPTIMIZING,
    StageId.RISK_ASSESSMENT: ReportPhase.BUILDING_ROADMAP,
}

BASE_FIELDS = ("userData", "generatedAt", "userName", "isPremium")


class ReportStreamError(Exception):
    """The stream reported a fatal error or ended without completing."""

    def __init__(self, message: str, partial: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.partial = partial or {}


class ReportAccumulator:
    """Folds chunks into a growing report."""

    def __init__(self, on_phase: Optional[Callable[[ReportPhase], None]] = None):
        self.phase = ReportPhase.ANALYZING
        self.fields: Dict[str, Any] = {}
        self.degraded_stages: List[StageId] = []
        self.error_message: Optional[str] = None
        self._result: Optional[ReportResult] = None
        self._on_phase = on_phase

    @property
    def finished(self) -> bool:
        return self.phase in (ReportPhase.COMPLETE, ReportPhase.ERROR)

    @property
    def result(self) -> Optional[ReportResult]:
        """The frozen report, once complete."""
        return self._result

    def _set_phase(self, phase: ReportPhase) -> None:
        self.phase = phase
        if self._on_phase is not None:
            self._on_phase(phase)

    def apply(self, chunk: Chunk) -> None:
        if self.finished:
            logger.warning(
                f"Ignoring {chunk.type.value} chunk after stream finished",
                extra={'extra_data': {'phase': self.phase.value}}
            )
            return

        if chunk.type == ChunkType.COMPUTED:
            data = chunk.data or {}
            for key in BASE_FIELDS:
                if key in data:
                    self.fields[key] = data[key]

        elif chunk.type == ChunkType.AI_STAGE:
            self._apply_stage(chunk)

        elif chunk.type == ChunkType.COMPLETE:
            try:
                self._result = self._build_result()
            except ReportStreamError as e:
                self.error_message = e.message
                self._set_phase(ReportPhase.ERROR)
                raise
            self._set_phase(ReportPhase.COMPLETE)

        elif chunk.type == ChunkType.ERROR:
            self.error_message = chunk.message or "Report generation failed"
            self._set_phase(ReportPhase.ERROR)

    def _apply_stage(self, chunk: Chunk) -> None:
        if chunk.stage is None:
            logger.warning("Ignoring ai_stage chunk without a stage")
            return
        try:
            payload = STAGE_SCHEMAS[chunk.stage].model_validate(chunk.data or {})
        except ValidationError as e:
            logger.warning(
                f"Ignoring invalid {chunk.stage.value} payload",
                extra={'extra_data': {'error_count': e.error_count()}}
            )
            return

        self.fields[chunk.stage.value] = payload
        if chunk.error:
            self.degraded_stages.append(chunk.stage)

        next_phase = PHASE_AFTER_STAGE.get(chunk.stage)
        if next_phase is not None:
            self._set_phase(next_phase)

    def _build_result(self) -> ReportResult:
        missing = [
            key for key in ("userData", "generatedAt", *(s.value for s in StageId))
            if key not in self.fields
        ]
        if missing:
            raise ReportStreamError(
                f"Stream completed without {', '.join(missing)}", partial=dict(self.fields)
            )
        try:
            return ReportResult.model_validate({
                "userName": "User",
                "isPremium": True,
                **self.fields,
            })
        except ValidationError as e:
            raise ReportStreamError(
                f"Stream completed with an invalid report: {e.error_count()} validation errors",
                partial=dict(self.fields),
            ) from e


async def decode_report_stream(
    fragments: AsyncIterable[Union[bytes, str]],
    on_phase: Optional[Callable[[ReportPhase], None]] = None,
) -> ReportResult:
    """
    Consume a report stream and return the finished report.

    Raises:
        ReportStreamError: an error chunk arrived, or the stream ended
            without a complete chunk.
    """
    decoder = ChunkDecoder()
    accumulator = ReportAccumulator(on_phase=on_phase)

    async for fragment in fragments:
        for chunk in decoder.feed(fragment):
            accumulator.apply(chunk)
    for chunk in decoder.close():
        accumulator.apply(chunk)

    if accumulator.phase == ReportPhase.ERROR:
        raise ReportStreamError(accumulator.error_message, partial=dict(accumulator.fields))
    if accumulator.result is None:
        raise ReportStreamError("Report stream ended before completion", partial=dict(accumulator.fields))
    return accumulator.result
