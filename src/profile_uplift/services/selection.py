"""Photo selection: prompt, submit, and strictly validate the model's picks."""

import json
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from profile_uplift.domain.errors import SelectionValidationError
from profile_uplift.domain.gateway import Provider
from profile_uplift.domain.images import UploadedImage
from profile_uplift.domain.profile import SelectionResult
from profile_uplift.services.cdn import ProgressCallback
from profile_uplift.services.gateway import GatewayClient
from profile_uplift.services.prompts import build_selection_prompt
from profile_uplift.services.submission import SelectionSubmitter

_logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```[\w-]*\s*(.*?)\s*```", re.DOTALL)


def extract_json_array(text: str) -> list[Any]:
    """Pull a JSON array out of model text that may carry fences or prose."""
    candidate = (text or "").strip()
    if not candidate:
        raise SelectionValidationError("empty model output")
    fenced = _FENCE.search(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    try:
        parsed = json.loads(candidate)
    except ValueError:
        start, end = candidate.find("["), candidate.rfind("]")
        if start == -1 or end <= start:
            raise SelectionValidationError("no JSON array in model output") from None
        try:
            parsed = json.loads(candidate[start : end + 1])
        except ValueError as exc:
            raise SelectionValidationError(f"malformed JSON: {exc}") from exc
    # JSON mode on some vendors wraps the array in a single-key object.
    if isinstance(parsed, dict):
        lists = [value for value in parsed.values() if isinstance(value, list)]
        if len(lists) == 1:
            parsed = lists[0]
    if not isinstance(parsed, list):
        raise SelectionValidationError("model output is not a JSON array")
    return parsed


def _position(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def validate_selection(
    text: str, index_map: Mapping[int, str], requested: int
) -> list[SelectionResult]:
    """Map the model's positional picks back to photo ids.

    Anything short of exactly ``min(requested, len(index_map))`` distinct,
    in-range picks with non-empty reasons rejects the whole batch.
    """
    expected = min(requested, len(index_map))
    items = extract_json_array(text)
    if len(items) != expected:
        raise SelectionValidationError(
            f"expected {expected} selections, got {len(items)}"
        )
    results: list[SelectionResult] = []
    seen: set[int] = set()
    for item in items:
        if not isinstance(item, dict):
            raise SelectionValidationError("selection entry is not an object")
        position = _position(item.get("index"))
        if position is None or position not in index_map:
            raise SelectionValidationError(f"index out of range: {item.get('index')!r}")
        if position in seen:
            raise SelectionValidationError(f"duplicate index: {position}")
        reason = item.get("reason")
        if not isinstance(reason, str) or not reason.strip():
            raise SelectionValidationError(f"empty reason for index {position}")
        seen.add(position)
        results.append(SelectionResult(photo_id=index_map[position], reason=reason.strip()))
    return results


@dataclass
class PhotoSelectionService:
    """Asks the model for the best photos and validates the answer."""

    submitter: SelectionSubmitter
    gateway: GatewayClient
    photos_to_select: int = 5

    async def select(
        self,
        photos: Sequence[UploadedImage],
        *,
        user_gender: str | None = None,
        target_gender: str | None = None,
        provider: Provider | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[SelectionResult]:
        prompt = build_selection_prompt(
            len(photos), self.photos_to_select, user_gender, target_gender
        )
        batch = await self.submitter.prepare(
            photos, prompt, provider=provider, on_progress=on_progress
        )
        response = await self.gateway.generate(batch.request)
        text = response.text()
        try:
            results = validate_selection(text, batch.index_map, self.photos_to_select)
        except SelectionValidationError:
            _logger.warning(
                "Rejected selection from %s via %s pipeline: %r",
                response.model_version,
                batch.pipeline,
                text[:500],
            )
            raise
        _logger.info(
            "Selected %s of %s photos via %s pipeline",
            len(results),
            len(photos),
            batch.pipeline,
        )
        return results
