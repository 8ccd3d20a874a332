"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from profile_uplift.adapters.cloudinary_client import (
    HttpSignatureSource,
    HttpxCloudinaryUploader,
)
from profile_uplift.adapters.gateway_client import HttpxGatewayClient
from profile_uplift.adapters.gemini_client import HttpxGeminiClient
from profile_uplift.adapters.image_fetcher import HttpxImageFetcher
from profile_uplift.adapters.openai_chat_client import OpenAIChatClient
from profile_uplift.config import Settings
from profile_uplift.services.archive import ArchiveService
from profile_uplift.services.bio import BioService
from profile_uplift.services.budget import PayloadBudgeter
from profile_uplift.services.cdn import CloudinarySigner, UploadSigner
from profile_uplift.services.enhancement import EnhancementService
from profile_uplift.services.gateway import GatewayClient, ProviderClient, ProviderGateway
from profile_uplift.services.image_codec import ImageTranscoder
from profile_uplift.services.profile import ProfileService
from profile_uplift.services.selection import PhotoSelectionService
from profile_uplift.services.sessions import InMemorySessionStore
from profile_uplift.services.submission import SelectionSubmitter


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    gateway: ProviderGateway
    signer: CloudinarySigner
    profile_service: ProfileService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    closers: list[Callable[[], Awaitable[None]]] = []

    clients: dict[str, ProviderClient] = {}
    if resolved_settings.openai_api_key:
        openai_client = OpenAIChatClient.create(
            api_key=resolved_settings.openai_api_key,
            model=resolved_settings.openai_model,
            timeout=resolved_settings.llm_timeout_seconds,
        )
        clients["openai"] = openai_client
        closers.append(openai_client.close)
    if resolved_settings.gemini_api_key:
        gemini_client = HttpxGeminiClient.create(
            api_key=resolved_settings.gemini_api_key,
            model=resolved_settings.gemini_model,
            base_url=resolved_settings.gemini_base_url,
            timeout=resolved_settings.llm_timeout_seconds,
        )
        clients["gemini"] = gemini_client
        closers.append(gemini_client.close)
    image_fetcher = HttpxImageFetcher.create(
        resolved_settings.image_fetch_timeout_seconds
    )
    closers.append(image_fetcher.close)
    gateway = ProviderGateway(
        clients=clients,
        default_provider=resolved_settings.default_provider,
        image_fetcher=image_fetcher,
    )

    wizard_gateway: GatewayClient = gateway
    if resolved_settings.gateway_url:
        remote_gateway = HttpxGatewayClient.create(
            resolved_settings.gateway_url, resolved_settings.llm_timeout_seconds
        )
        closers.append(remote_gateway.close)
        wizard_gateway = remote_gateway

    signer = CloudinarySigner(
        cloud_name=resolved_settings.cloudinary_cloud_name,
        api_key=resolved_settings.cloudinary_api_key,
        api_secret=resolved_settings.cloudinary_api_secret,
        upload_preset=resolved_settings.cloudinary_upload_preset,
    )
    upload_signer: UploadSigner | None = signer if signer.configured else None
    uploader = HttpxCloudinaryUploader.create(
        signer=upload_signer,
        cloud_name=resolved_settings.cloudinary_cloud_name,
        upload_preset=resolved_settings.cloudinary_upload_preset,
        timeout=resolved_settings.upload_timeout_seconds,
    )
    if upload_signer is None and resolved_settings.cloudinary_signature_url:
        uploader.signer = HttpSignatureSource(
            signature_url=resolved_settings.cloudinary_signature_url,
            http_client=uploader.http_client,
        )
    closers.append(uploader.close)

    budgeter = PayloadBudgeter(
        transcoder=ImageTranscoder(
            decode_timeout_seconds=resolved_settings.decode_timeout_seconds
        ),
        config=resolved_settings.budget,
    )
    selection_service = PhotoSelectionService(
        submitter=SelectionSubmitter(
            uploader=uploader,
            budgeter=budgeter,
            upload_concurrency=resolved_settings.budget.max_concurrency,
        ),
        gateway=wizard_gateway,
        photos_to_select=resolved_settings.photos_to_select,
    )
    bio_service = BioService(
        gateway=wizard_gateway,
        max_chat_refinements=resolved_settings.max_chat_refinements,
        timeout_seconds=resolved_settings.llm_timeout_seconds,
    )
    profile_service = ProfileService(
        store=InMemorySessionStore(ttl_seconds=resolved_settings.session_ttl_seconds),
        selection=selection_service,
        bio=bio_service,
        enhancement=EnhancementService(
            uploader=uploader, concurrency=resolved_settings.budget.max_concurrency
        ),
        archive=ArchiveService(fetch=uploader.fetch),
        max_upload_photos=resolved_settings.max_upload_photos,
        min_upload_photos=resolved_settings.min_upload_photos,
        analysis_watchdog_seconds=resolved_settings.analysis_watchdog_seconds,
    )

    async def close_resources() -> None:
        for close in closers:
            await close()

    return AppContainer(
        settings=resolved_settings,
        gateway=gateway,
        signer=signer,
        profile_service=profile_service,
        close_resources=close_resources,
    )
