"""Cursor-based paginated listing of one (bucket, path) at a time."""
import logging
import time
from typing import Callable, Optional

from ..errors import ListingError
from ..models import ListingConfig
from ..protocols import ITransport
from .models import (
    AccumulatedListing,
    ListingStatus,
    LoadResult,
    LoadStatus,
    normalize_path,
)

logger = logging.getLogger(__name__)


class ListingPaginator:
    """
    Accumulates listing pages for the current (bucket, path).

    - At most one request in flight; further "load more" calls are dropped.
    - "Load more" calls within ``debounce`` seconds of the last completed
      request are dropped.
    - A reset always runs: it discards the accumulated listing and cursor
      first, and any response to an older request is thrown away.

    The paginator does not care what triggers ``load`` (scroll sentinel,
    CLI loop, test).
    """

    def __init__(
        self,
        transport: ITransport,
        config: Optional[ListingConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self._config = config or ListingConfig()
        self._clock = clock
        self.listing = AccumulatedListing()
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._last_completed: Optional[float] = None

    @property
    def is_loading(self) -> bool:
        return self._in_flight is not None

    async def load(self, bucket: str, path: str = "", reset: bool = False) -> LoadResult:
        """
        Fetch the first page (``reset``) or the next page of ``bucket``/``path``.

        A non-reset call for a different bucket or path than the current one
        is treated as a reset.
        """
        path = normalize_path(path)
        if not reset and (bucket, path) != self.listing.context:
            logger.debug(f"Listing context changed to {bucket}/{path}, resetting")
            reset = True

        if reset:
            self._generation += 1
            self.listing.reset(bucket, path)
            return await self._fetch(self._generation, cursor=None, reset=True)

        if self._in_flight is not None:
            return LoadResult.skipped(LoadStatus.SKIPPED_IN_FLIGHT)
        if not self.listing.has_more:
            return LoadResult.skipped(LoadStatus.SKIPPED_EXHAUSTED)
        if (
            self._last_completed is not None
            and self._clock() - self._last_completed < self._config.debounce
        ):
            return LoadResult.skipped(LoadStatus.SKIPPED_DEBOUNCE)
        return await self._fetch(self._generation, cursor=self.listing.cursor, reset=False)

    async def refresh(self) -> LoadResult:
        """Reset the current context, e.g. after an upload or transfer."""
        bucket, path = self.listing.context
        if bucket is None:
            raise ListingError("Nothing to refresh: no bucket loaded yet")
        return await self.load(bucket, path, reset=True)

    async def load_all(self, bucket: str, path: str = "") -> AccumulatedListing:
        """Reset, then follow the cursor chain until the listing is exhausted."""
        result = await self.load(bucket, path, reset=True)
        while True:
            if result.status == LoadStatus.FAILED:
                raise ListingError(result.error)
            if result.status == LoadStatus.SUPERSEDED:
                raise ListingError(f"Listing of {bucket}/{path} was superseded by a newer reset")
            if not self.listing.has_more:
                return self.listing
            result = await self._fetch(self._generation, cursor=self.listing.cursor, reset=False)

    async def _fetch(self, generation: int, cursor: Optional[str], reset: bool) -> LoadResult:
        listing = self.listing
        bucket, path = listing.context
        self._in_flight = generation
        listing.status = ListingStatus.LOADING
        listing.error = None

        try:
            page = await self._transport.list_objects(
                bucket,
                cursor=cursor,
                limit=self._config.page_size,
                prefix=path or None,
                skip_cache=reset,
            )
        except Exception as exc:
            if generation != self._generation:
                return LoadResult.skipped(LoadStatus.SUPERSEDED)
            message = f"Failed to load files from {bucket}/{path}: {exc}"
            logger.error(message)
            listing.status = ListingStatus.ERROR
            listing.error = message
            if reset:
                listing.has_more = False
            return LoadResult.fail(message)
        finally:
            if self._in_flight == generation:
                self._in_flight = None
            if generation == self._generation:
                self._last_completed = self._clock()

        if generation != self._generation:
            logger.debug(f"Discarding page for superseded listing of {bucket}/{path}")
            return LoadResult.skipped(LoadStatus.SUPERSEDED)

        if reset:
            listing.replace_with(page)
            added = len(listing.objects)
        else:
            added = listing.append(page)
        listing.status = ListingStatus.READY
        logger.info(
            f"Loaded {added} objects from {bucket}/{path} "
            f"(total={len(listing.objects)}, folders={len(listing.folders)}, has_more={listing.has_more})"
        )
        return LoadResult.ok(page)
