"""R2Manager - one transport shared by uploads, listing and transfers."""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .listing.models import AccumulatedListing, LoadResult
from .listing.paginator import ListingPaginator
from .listing.view import FilterSpec, Projection, SortSpec, project
from .models import (
    ListingConfig,
    TransferBatch,
    TransferDestination,
    TransferMode,
    TransferResult,
    UploadConfig,
    UploadResult,
    UploadTask,
)
from .protocols import IFileSource, IFileValidator, ITransport
from .services.api_client import HTTPTransport
from .transfer import TransferOrchestrator
from .upload.coordinator import UploadCoordinator
from .upload.source import LocalFileSource

logger = logging.getLogger(__name__)

SourceLike = Union[IFileSource, str, Path]


class R2Manager:
    """
    Facade over the upload coordinator, listing paginator and transfer
    orchestrator. After an upload or transfer touching the bucket currently
    listed, the listing is reset so the next projection shows the change.
    Deletes, renames and moves out of the listed bucket are applied to the
    listing locally instead.

    Usage:
        async with R2Manager(api_url, token) as r2:
            r2.upload_events.on("progress", lambda e: print(e.percent))
            result = await r2.upload("report.pdf", "docs", prefix="2024")
            await r2.list("docs", "2024")
            for obj in r2.project(SortSpec(SortField.SIZE)).objects:
                print(obj.key)

        # Any ITransport works; it is not closed by the manager
        async with R2Manager(transport=fake) as r2:
            ...
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        upload_config: Optional[UploadConfig] = None,
        listing_config: Optional[ListingConfig] = None,
        transport: Optional[ITransport] = None,
        validator: Optional[IFileValidator] = None,
    ):
        if transport is None and not api_url:
            raise ValueError("Either api_url or transport must be provided")

        self._api_url = api_url
        self._token = token
        self._upload_config = upload_config or UploadConfig()
        self._listing_config = listing_config or ListingConfig()
        self._external_transport = transport
        self._validator = validator

        # Initialized in __aenter__
        self._http: Optional[HTTPTransport] = None
        self._transport: Optional[ITransport] = None
        self._coordinator: Optional[UploadCoordinator] = None
        self._paginator: Optional[ListingPaginator] = None
        self._transfers: Optional[TransferOrchestrator] = None

    async def __aenter__(self):
        if self._external_transport is not None:
            self._transport = self._external_transport
        else:
            self._http = HTTPTransport(self._api_url, self._token)
            await self._http.__aenter__()
            self._transport = self._http

        self._coordinator = UploadCoordinator(
            self._transport, self._upload_config, validator=self._validator
        )
        self._paginator = ListingPaginator(self._transport, self._listing_config)
        self._transfers = TransferOrchestrator(self._transport)
        return self

    async def __aexit__(self, *args):
        if self._http:
            await self._http.__aexit__(*args)
            self._http = None

    def _require(self, component):
        if component is None:
            raise RuntimeError("R2Manager not initialized. Use 'async with' context.")
        return component

    @property
    def upload_events(self):
        return self._require(self._coordinator).events

    @property
    def transfer_events(self):
        return self._require(self._transfers).events

    @property
    def listing(self) -> AccumulatedListing:
        return self._require(self._paginator).listing

    # Uploads

    def create_task(self, source: SourceLike, bucket: str, prefix: Optional[str] = None) -> UploadTask:
        if not isinstance(source, IFileSource):
            source = LocalFileSource(Path(source))
        return self._require(self._coordinator).create_task(source, bucket, prefix)

    async def upload(self, source: SourceLike, bucket: str, prefix: Optional[str] = None) -> UploadResult:
        """Upload one file, then refresh the listing if it shows ``bucket``."""
        task = self.create_task(source, bucket, prefix)
        result = await self._require(self._coordinator).upload_file(task)
        await self._refresh_if_listed(bucket)
        return result

    async def upload_many(
        self, sources: Sequence[SourceLike], bucket: str, prefix: Optional[str] = None
    ) -> List[UploadResult]:
        """Upload files one after another; the listing is refreshed once at the end."""
        tasks = [self.create_task(source, bucket, prefix) for source in sources]
        results = await self._require(self._coordinator).upload_many(tasks)
        await self._refresh_if_listed(bucket)
        return results

    async def resume(self, task: UploadTask) -> UploadResult:
        """Retry a failed task; chunks already stored are not sent again."""
        if task.is_terminal:
            task = task.resume()
        result = await self._require(self._coordinator).upload_file(task)
        await self._refresh_if_listed(task.bucket)
        return result

    # Listing

    async def list(self, bucket: str, path: str = "", reset: bool = False) -> LoadResult:
        return await self._require(self._paginator).load(bucket, path, reset=reset)

    async def list_all(self, bucket: str, path: str = "") -> AccumulatedListing:
        return await self._require(self._paginator).load_all(bucket, path)

    def project(
        self, sort_spec: Optional[SortSpec] = None, filter_spec: Optional[FilterSpec] = None
    ) -> Projection:
        return project(self.listing, sort_spec, filter_spec)

    # Transfers

    async def transfer(
        self,
        mode: TransferMode,
        source_bucket: str,
        destination: TransferDestination,
        files: Optional[List[str]] = None,
        folders: Optional[List[str]] = None,
    ) -> TransferResult:
        batch = TransferBatch.to(mode, source_bucket, destination, files, folders)
        result = await self._require(self._transfers).run(batch)
        if mode == TransferMode.MOVE and destination.bucket != source_bucket:
            self._drop_moved(batch, result.succeeded)
            await self._refresh_if_listed(destination.bucket)
        else:
            await self._refresh_if_listed(source_bucket, destination.bucket)
        return result

    async def move(
        self,
        source_bucket: str,
        destination: TransferDestination,
        files: Optional[List[str]] = None,
        folders: Optional[List[str]] = None,
    ) -> TransferResult:
        return await self.transfer(TransferMode.MOVE, source_bucket, destination, files, folders)

    async def copy(
        self,
        source_bucket: str,
        destination: TransferDestination,
        files: Optional[List[str]] = None,
        folders: Optional[List[str]] = None,
    ) -> TransferResult:
        return await self.transfer(TransferMode.COPY, source_bucket, destination, files, folders)

    async def rename_folder(self, bucket: str, old_path: str, new_path: str) -> None:
        """Rename on the server, then patch the local listing without refetching."""
        await self._require(self._transport).rename_folder(bucket, old_path, new_path)
        if self.listing.bucket == bucket:
            self.listing.rename_folder(old_path, new_path)

    async def rename_object(self, bucket: str, key: str, new_key: str) -> None:
        """Rename on the server, then patch the local listing without refetching."""
        await self._require(self._transport).rename_object(bucket, key, new_key)
        if self.listing.bucket == bucket:
            self.listing.rename_object(key, new_key)

    async def delete(self, bucket: str, keys: Sequence[str]) -> List[str]:
        """
        Delete objects one after another and drop them from the listing.

        The first failure propagates; keys deleted before it are still
        dropped locally.
        """
        transport = self._require(self._transport)
        deleted: List[str] = []
        try:
            for key in keys:
                await transport.delete_object(bucket, key)
                deleted.append(key)
        finally:
            if deleted and self.listing.bucket == bucket:
                self.listing.remove_objects(deleted)
        logger.info(f"Deleted {len(deleted)} objects from {bucket}")
        return deleted

    def _drop_moved(self, batch: TransferBatch, succeeded: Sequence[str]) -> None:
        listing = self.listing
        if listing.bucket != batch.source_bucket:
            return
        moved = set(succeeded)
        listing.remove_objects(e.key for e in batch.entries if not e.is_folder and e.key in moved)
        for entry in batch.entries:
            if entry.is_folder and entry.key in moved:
                listing.remove_folder(entry.key)

    async def _refresh_if_listed(self, *buckets: str) -> Optional[LoadResult]:
        paginator = self._require(self._paginator)
        if paginator.listing.bucket is None or paginator.listing.bucket not in buckets:
            return None
        logger.debug(f"Refreshing listing of {paginator.listing.bucket}/{paginator.listing.path}")
        return await paginator.refresh()
