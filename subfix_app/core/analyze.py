"""
Anomaly detection over transcribed segments.

Two passes feed one list:

1. a rule pass (no external call) that flags immediately repeated words;
2. an LLM review pass that sends segments in fixed-size batches and asks the
   model to flag wrong words, homophones and terminology mistakes.

LLM findings are merged after the rule findings in batch order. A finding
whose (segment id, flagged text) pair is already present, compared
case-insensitively, is dropped; the first one wins. Findings the model
marks ``autoFix`` are substituted into the segment text right away and
recorded as resolved. An auto-fix whose flagged text is not in the segment
stays open as an ordinary suggestion.
"""
import logging
import re
import typing as t

import pydantic
from google.genai import types
from pydantic import TypeAdapter

from subfix_app.config import (
    ANALYSIS_BATCH_SIZE,
    DEFAULT_CONTEXT,
    DEFAULT_LLM_CONFIDENCE,
    REPEATED_WORD_CONFIDENCE,
    AnomalyType,
)
from subfix_app.core.errors import AnalysisBatchError
from subfix_app.core.model_client import object_array_schema
from subfix_app.core.models import Anomaly, ReviewFinding, Segment
from subfix_app.core.formatting import replace_first

logger = logging.getLogger(__name__)

AUTO_APPLIED_SUFFIX = " (Auto-applied)"

REPEATED_WORD_RE = re.compile(r"\b(\w+)\s+\1\b", re.IGNORECASE)

_findings_adapter = TypeAdapter(t.List[ReviewFinding])

REVIEW_PROMPT = """Task: Review the following subtitle segments for grammar, spelling, and semantic errors.
Context: {context}

Instructions:
1. Identify any words or phrases that are used incorrectly in the given context.
2. Use the provided Context to identify subject matter, names, and terminology.
3. Check for homophones that don't fit the sentence context.
4. Flag corrections as "autoFix": true only if you are 100% confident.
5. Optionally set "type" to one of: {categories}.

Segments:
{segments}"""

REVIEW_SCHEMA = object_array_schema(
    {
        "segmentId": types.Type.NUMBER,
        "flaggedText": types.Type.STRING,
        "suggestion": types.Type.STRING,
        "reason": types.Type.STRING,
        "confidence": types.Type.NUMBER,
        "autoFix": types.Type.BOOLEAN,
        "type": types.Type.STRING,
    },
    required=("segmentId", "flaggedText", "suggestion", "autoFix"),
)


def find_repeated_words(segments: t.Sequence[Segment]) -> t.List[Anomaly]:
    """Rule pass: one anomaly per immediately repeated word."""
    anomalies = []
    for seg in segments:
        for m in REPEATED_WORD_RE.finditer(seg.text):
            anomalies.append(Anomaly(
                segment_id=seg.id,
                type=AnomalyType.GRAMMAR_ISSUE,
                flagged_text=m.group(0),
                suggestion=m.group(1),
                confidence=REPEATED_WORD_CONFIDENCE,
                context="Repeated word detected",
            ))
    return anomalies


def iter_batches(segments: t.Sequence[Segment], size: int) -> t.Iterator[t.Tuple[int, t.Sequence[Segment]]]:
    """Yield ``(start_index, batch)`` pairs in order."""
    if size < 1:
        raise ValueError("batch size must be positive")
    for start in range(0, len(segments), size):
        yield start, segments[start:start + size]


def build_review_prompt(batch: t.Sequence[Segment], user_context: t.Optional[str]) -> str:
    return REVIEW_PROMPT.format(
        context=user_context or DEFAULT_CONTEXT,
        categories=", ".join(AnomalyType.ALL),
        segments="\n".join(f"[{s.id}] {s.text}" for s in batch),
    )


def finding_to_anomaly(finding: ReviewFinding) -> Anomaly:
    """Normalise one model finding into an anomaly record."""
    confidence = DEFAULT_LLM_CONFIDENCE if finding.confidence is None else finding.confidence
    confidence = max(0.0, min(1.0, confidence))
    kind = finding.type if finding.type in AnomalyType.ALL else AnomalyType.GRAMMAR_ISSUE
    context = finding.reason or ""
    if finding.auto_fix:
        context += AUTO_APPLIED_SUFFIX
    return Anomaly(
        segment_id=finding.segment_id,
        type=kind,
        flagged_text=finding.flagged_text,
        suggestion=finding.suggestion,
        confidence=confidence,
        context=context,
        resolved=finding.auto_fix,
        user_correction=finding.suggestion if finding.auto_fix else None,
    )


async def review_batch(
    start: int,
    batch: t.Sequence[Segment],
    user_context: t.Optional[str],
    client,
) -> t.List[Anomaly]:
    """Ask the model to review one batch.

    Raises:
        AnalysisBatchError: If the call fails or the response is malformed
    """
    try:
        payload = await client.generate_json(build_review_prompt(batch, user_context), REVIEW_SCHEMA)
    except Exception as e:
        raise AnalysisBatchError(start, str(e) or type(e).__name__) from e
    if not isinstance(payload, list):
        raise AnalysisBatchError(start, f"expected a JSON array, got {type(payload).__name__}")
    try:
        findings = _findings_adapter.validate_python(payload)
    except pydantic.ValidationError as e:
        raise AnalysisBatchError(start, f"{e.error_count()} invalid field(s)") from e

    ids = {s.id for s in batch}
    anomalies = []
    for finding in findings:
        if finding.segment_id not in ids or not finding.flagged_text:
            logger.debug("Dropping finding outside batch %d: %r", start, finding)
            continue
        anomalies.append(finding_to_anomaly(finding))
    return anomalies


async def review_with_llm(
    segments: t.Sequence[Segment],
    user_context: t.Optional[str],
    client,
    batch_size: int = ANALYSIS_BATCH_SIZE,
) -> t.List[Anomaly]:
    """LLM pass. Batches run one after another, so results keep batch order.

    A failing batch is logged and contributes nothing.
    """
    anomalies: t.List[Anomaly] = []
    for start, batch in iter_batches(segments, batch_size):
        try:
            anomalies.extend(await review_batch(start, batch, user_context, client))
        except AnalysisBatchError as e:
            logger.error("LLM review skipped: %s", e)
    return anomalies


def merge_anomalies(
    segments: t.Sequence[Segment],
    rule_anomalies: t.Sequence[Anomaly],
    llm_anomalies: t.Sequence[Anomaly],
) -> t.List[Anomaly]:
    """Merge both passes, applying auto-fixes to ``segments`` in place."""
    by_id = {s.id: s for s in segments}
    merged = list(rule_anomalies)
    seen = {(a.segment_id, a.flagged_text.lower()) for a in merged}

    for anom in llm_anomalies:
        if anom.resolved and anom.user_correction is not None:
            seg = by_id.get(anom.segment_id)
            if seg is not None and anom.flagged_text in seg.text:
                seg.text = replace_first(seg.text, anom.flagged_text, anom.user_correction)
            else:
                # nothing to substitute, leave it for the user
                logger.debug("Auto-fix %r not found in segment %d", anom.flagged_text, anom.segment_id)
                anom.resolved = False
                anom.user_correction = None
                anom.context = (anom.context or "").removesuffix(AUTO_APPLIED_SUFFIX)

        key = (anom.segment_id, anom.flagged_text.lower())
        if key in seen:
            continue
        seen.add(key)
        merged.append(anom)
    return merged


async def analyze(
    segments: t.Sequence[Segment],
    user_context: t.Optional[str],
    client,
    batch_size: int = ANALYSIS_BATCH_SIZE,
) -> t.List[Anomaly]:
    """Run both passes and return the merged anomalies.

    Auto-fixed text is written into ``segments`` before this returns.
    """
    if not segments:
        return []
    rule_anomalies = find_repeated_words(segments)
    llm_anomalies = await review_with_llm(segments, user_context, client, batch_size)
    merged = merge_anomalies(segments, rule_anomalies, llm_anomalies)
    logger.info(
        "Analysis found %d anomalies (%d rule, %d model, %d auto-applied)",
        len(merged),
        len(rule_anomalies),
        len(merged) - len(rule_anomalies),
        sum(1 for a in merged if a.resolved),
    )
    return merged
