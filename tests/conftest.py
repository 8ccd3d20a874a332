"""Shared test fixtures."""

import io
from dataclasses import dataclass, field

import pytest
from PIL import Image

from profile_uplift.config import BudgetConfig, Settings
from profile_uplift.containers import AppContainer
from profile_uplift.domain.errors import CdnNotConfiguredError, CdnUploadError
from profile_uplift.domain.gateway import (
    Candidate,
    Content,
    GatewayBody,
    GatewayRequest,
    Part,
    ProviderResponse,
)
from profile_uplift.domain.images import EncodedImage, EncodeTarget, UploadedImage
from profile_uplift.domain.questionnaire import Answers
from profile_uplift.services.archive import ArchiveService
from profile_uplift.services.bio import BioService
from profile_uplift.services.budget import PayloadBudgeter
from profile_uplift.services.cdn import (
    CdnAsset,
    CdnUploader,
    CloudinarySigner,
    ProgressCallback,
)
from profile_uplift.services.enhancement import EnhancementService
from profile_uplift.services.gateway import (
    FetchedImage,
    GatewayClient,
    ImageFetcher,
    ProviderClient,
    ProviderGateway,
)
from profile_uplift.services.profile import ProfileService
from profile_uplift.services.selection import PhotoSelectionService
from profile_uplift.services.sessions import InMemorySessionStore
from profile_uplift.services.submission import SelectionSubmitter

CDN_BASE = "https://res.cloudinary.com/demo/image/upload"


def text_response(
    text: str, provider: str = "openai", model: str = "gpt-5-mini"
) -> ProviderResponse:
    return ProviderResponse(
        candidates=[Candidate(content=Content(role="model", parts=[Part(text=text)]))],
        model_version=model,
        provider=provider,
    )


def jpeg_bytes(
    size: tuple[int, int] = (64, 48), color: tuple[int, int, int] = (200, 80, 40)
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


def png_bytes(size: tuple[int, int] = (32, 32), mode: str = "RGBA") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size).save(buffer, format="PNG")
    return buffer.getvalue()


def heic_bytes(major: bytes = b"heic", compatible: tuple[bytes, ...] = ()) -> bytes:
    """Minimal ISO-BMFF ``ftyp`` box."""
    brands = b"".join(compatible)
    size = 16 + len(brands)
    return size.to_bytes(4, "big") + b"ftyp" + major + b"\x00\x00\x00\x00" + brands


def make_photo(index: int, data: bytes | None = None) -> UploadedImage:
    return UploadedImage(
        id=f"photo-{index}",
        data=data if data is not None else jpeg_bytes(),
        declared_type="image/jpeg",
        filename=f"IMG_{index:04d}.jpg",
    )


@dataclass
class FakeProviderClient(ProviderClient):
    """Provider client returning canned text and recording bodies."""

    model: str = "gpt-5-mini"
    provider: str = "openai"
    reply: str = "ok"
    bodies: list[GatewayBody] = field(default_factory=list)

    async def generate(self, body: GatewayBody) -> ProviderResponse:
        self.bodies.append(body)
        return text_response(self.reply, provider=self.provider, model=self.model)


@dataclass
class FakeGateway(GatewayClient):
    """Gateway replaying scripted replies; the last one repeats."""

    replies: list[str | Exception] = field(default_factory=lambda: ["ok"])
    requests: list[GatewayRequest] = field(default_factory=list)

    async def generate(self, request: GatewayRequest) -> ProviderResponse:
        self.requests.append(request)
        index = min(len(self.requests), len(self.replies)) - 1
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return text_response(reply)


@dataclass
class FakeImageFetcher(ImageFetcher):
    images: dict[str, bytes] = field(default_factory=dict)
    fetched: list[str] = field(default_factory=list)

    async def fetch_image(self, url: str) -> FetchedImage:
        self.fetched.append(url)
        return FetchedImage(data=self.images.get(url, jpeg_bytes()), mime_type="image/jpeg")


@dataclass
class FakeUploader(CdnUploader):
    """CDN uploader that stores nothing and hands back predictable URLs."""

    configured: bool = True
    fail_for: set[str] = field(default_factory=set)
    fetch_fail_for: set[str] = field(default_factory=set)
    uploads: list[str] = field(default_factory=list)
    fetches: list[str] = field(default_factory=list)

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> CdnAsset:
        if not self.configured:
            raise CdnNotConfiguredError()
        if filename in self.fail_for:
            raise CdnUploadError("quota exceeded")
        if on_progress:
            on_progress(0.0)
            on_progress(0.5)
        self.uploads.append(filename)
        if on_progress:
            on_progress(1.0)
        return CdnAsset(secure_url=f"{CDN_BASE}/v1/{filename}", size_bytes=len(data))

    async def fetch(self, url: str) -> bytes:
        self.fetches.append(url)
        if any(url.endswith(name) for name in self.fetch_fail_for):
            raise CdnUploadError("fetch failed")
        return b"enhanced:" + url.encode()


@dataclass
class SizedTranscoder:
    """Transcoder stand-in whose output size follows the budget."""

    overshoot: float = 1.0
    targets: list[EncodeTarget] = field(default_factory=list)

    async def transcode(self, image: UploadedImage, target: EncodeTarget) -> UploadedImage:
        self.targets.append(target)
        size = int(target.target_bytes * self.overshoot)
        encoded = EncodedImage(
            data=b"\xff" * size,
            quality=target.initial_quality,
            width=target.max_dimension,
            height=target.max_dimension,
        )
        return image.with_encoding(encoded)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        openai_model="gpt-5-mini",
        gemini_api_key=None,
        default_provider="openai",
        gateway_url=None,
        cloudinary_cloud_name="demo",
        cloudinary_api_key="cdn-key",
        cloudinary_api_secret="cdn-secret",
        cloudinary_upload_preset="uplift",
        cloudinary_signature_url=None,
        budget=BudgetConfig(),
    )


@pytest.fixture
def answers() -> Answers:
    return Answers(
        values={
            "name": "Sam",
            "age": "29",
            "gender": "Female",
            "target_gender": "Men",
            "passion": "climbing",
            "looking_for": ["Something casual and fun", "New friends and connections"],
        }
    )


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def provider_client() -> FakeProviderClient:
    return FakeProviderClient()


@pytest.fixture
def profile_service(
    settings: Settings, uploader: FakeUploader, fake_gateway: FakeGateway
) -> ProfileService:
    budgeter = PayloadBudgeter(transcoder=SizedTranscoder(), config=settings.budget)
    return ProfileService(
        store=InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds),
        selection=PhotoSelectionService(
            submitter=SelectionSubmitter(uploader=uploader, budgeter=budgeter),
            gateway=fake_gateway,
            photos_to_select=settings.photos_to_select,
        ),
        bio=BioService(
            gateway=fake_gateway, max_chat_refinements=settings.max_chat_refinements
        ),
        enhancement=EnhancementService(uploader=uploader),
        archive=ArchiveService(fetch=uploader.fetch),
        max_upload_photos=settings.max_upload_photos,
        analysis_watchdog_seconds=settings.analysis_watchdog_seconds,
    )


@pytest.fixture
def container(
    settings: Settings,
    provider_client: FakeProviderClient,
    profile_service: ProfileService,
) -> AppContainer:
    gateway = ProviderGateway(
        clients={"openai": provider_client},
        default_provider=settings.default_provider,
        image_fetcher=FakeImageFetcher(),
    )
    signer = CloudinarySigner(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        upload_preset=settings.cloudinary_upload_preset,
        clock=lambda: 1_700_000_000.0,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        gateway=gateway,
        signer=signer,
        profile_service=profile_service,
        close_resources=close_resources,
    )
