"""Wiring of stores, backends and services."""

from dataclasses import dataclass
from typing import Optional

from idolmedia.core.config import Settings, settings as default_settings
from idolmedia.metadata.store import InMemoryMetadataStore, MetadataStore, configure_indexes
from idolmedia.services.animation import AnimationService
from idolmedia.services.catalog import CatalogService
from idolmedia.services.god_idol import GodIdolService
from idolmedia.services.splash import SplashService
from idolmedia.storage.base import StorageBackend
from idolmedia.storage.factory import get_storage_backend
from idolmedia.uploads.archive import ArchiveExpander
from idolmedia.uploads.coordinator import UploadTransactionCoordinator
from idolmedia.uploads.presign import PresignedAccessIssuer
from idolmedia.uploads.stager import ObjectStagingUploader


@dataclass
class MediaServices:
    backend: StorageBackend
    store: MetadataStore
    splash: SplashService
    god_idol: GodIdolService
    animation: AnimationService
    catalog: CatalogService


def build_services(
    backend: Optional[StorageBackend] = None,
    store: Optional[MetadataStore] = None,
    settings: Optional[Settings] = None,
) -> MediaServices:
    """Build every service over one backend and one metadata store."""
    settings = settings or default_settings
    backend = backend or get_storage_backend()
    store = store or InMemoryMetadataStore()
    configure_indexes(store)

    stager = ObjectStagingUploader(backend)
    expander = ArchiveExpander(
        stager,
        image_extensions=settings.archive_image_extensions,
        max_files=settings.MAX_FILES_PER_ARCHIVE,
        max_file_size_mb=settings.MAX_UPLOAD_MB,
    )
    coordinator = UploadTransactionCoordinator(stager, expander)
    presigner = PresignedAccessIssuer(backend, default_ttl_seconds=settings.PRESIGNED_URL_TTL_SECONDS)

    return MediaServices(
        backend=backend,
        store=store,
        splash=SplashService(store, coordinator, presigner, settings),
        god_idol=GodIdolService(store, coordinator, presigner, settings),
        animation=AnimationService(store, coordinator, presigner, settings),
        catalog=CatalogService(store),
    )
