"""Fits a batch of inline images under a request-size ceiling."""

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from profile_uplift.config import BudgetConfig
from profile_uplift.domain.errors import InputValidationError, PayloadTooLargeError
from profile_uplift.domain.images import EncodeTarget, UploadedImage
from profile_uplift.services.image_codec import ImageTranscoder
from profile_uplift.services.tasks import run_all

_logger = logging.getLogger(__name__)

RequestBuilder = Callable[[Sequence[UploadedImage]], dict[str, object]]


@dataclass(frozen=True)
class BatchBudget:
    """Per-image target for one encoding round."""

    target_bytes: int
    max_dimension: int


@dataclass(frozen=True)
class BudgetedBatch:
    images: tuple[UploadedImage, ...]
    request: dict[str, object]
    serialized_bytes: int
    rounds: int


def serialized_size(payload: dict[str, object]) -> int:
    """Byte length of ``payload`` as it goes over the wire."""
    return len(json.dumps(payload, separators=(",", ":")).encode("utf-8"))


def initial_budget(count: int, config: BudgetConfig) -> BatchBudget:
    """Split the ceiling evenly and pick a starting dimension for ``count`` photos."""
    if count < 1:
        raise ValueError("count must be positive")
    remaining = (
        config.ceiling_bytes
        - config.structural_overhead_bytes
        - count * config.per_image_overhead_bytes
    )
    per_image = remaining // count
    target = max(config.floor_bytes, min(per_image, config.cap_bytes))
    dimension = config.dimension_fallback
    for max_count, step_dimension in config.dimension_steps:
        if count <= max_count:
            dimension = step_dimension
            break
    return BatchBudget(target_bytes=target, max_dimension=dimension)


def shrink_budget(budget: BatchBudget, config: BudgetConfig) -> BatchBudget:
    return BatchBudget(
        target_bytes=max(1, int(budget.target_bytes * config.target_shrink)),
        max_dimension=max(
            config.min_dimension, int(budget.max_dimension * config.dimension_shrink)
        ),
    )


@dataclass
class PayloadBudgeter:
    """Re-encodes every image until the whole request fits under the ceiling.

    Each retry starts from the original bytes with a smaller budget; partial
    batches are never returned.
    """

    transcoder: ImageTranscoder
    config: BudgetConfig

    def encode_target(self, budget: BatchBudget) -> EncodeTarget:
        config = self.config
        return EncodeTarget(
            target_bytes=budget.target_bytes,
            max_dimension=budget.max_dimension,
            min_dimension=min(config.min_dimension, budget.max_dimension),
            initial_quality=config.initial_quality,
            min_quality=config.min_quality,
            quality_step=config.quality_step,
            dimension_ratio=config.dimension_ratio,
        )

    async def encode_batch(
        self, images: Sequence[UploadedImage], build_request: RequestBuilder
    ) -> BudgetedBatch:
        if not images:
            raise InputValidationError("Add at least one photo first.")
        budget = initial_budget(len(images), self.config)
        rounds = 0
        size = 0
        while rounds <= self.config.max_retries:
            rounds += 1
            encoded = await self._encode_all(images, self.encode_target(budget))
            request = build_request(encoded)
            size = serialized_size(request)
            _logger.info(
                "Inline batch round %s: %s photos, target=%sB dim=%spx, request=%sB",
                rounds,
                len(images),
                budget.target_bytes,
                budget.max_dimension,
                size,
            )
            if size <= self.config.ceiling_bytes:
                return BudgetedBatch(
                    images=tuple(encoded),
                    request=request,
                    serialized_bytes=size,
                    rounds=rounds,
                )
            budget = shrink_budget(budget, self.config)
        raise PayloadTooLargeError(size, self.config.ceiling_bytes, rounds)

    async def _encode_all(
        self, images: Sequence[UploadedImage], target: EncodeTarget
    ) -> list[UploadedImage]:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def encode_one(image: UploadedImage) -> UploadedImage:
            async with semaphore:
                return await self.transcoder.transcode(image, target)

        # One failed photo fails the batch: selection needs every image.
        return await run_all(encode_one(image) for image in images)
