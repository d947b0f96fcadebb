"""Sequential move/copy of selected files and folders."""
import logging
from typing import List

from .models import TransferBatch, TransferEntry, TransferMode, TransferResult
from .protocols import ITransport
from .utils.events import EventEmitter, TransferProgressEvent

logger = logging.getLogger(__name__)


def folder_destination_path(folder_key: str, destination_path: str) -> str:
    """
    Where a folder lands: ``docs/2024`` sent to ``archive`` -> ``archive/2024``.

    With an empty destination path the folder keeps its own name at the root.
    """
    name = folder_key.strip("/").rsplit("/", 1)[-1]
    base = destination_path.strip("/")
    return f"{base}/{name}" if base else name


class TransferOrchestrator:
    """
    Runs a TransferBatch entry by entry, in order.

    Emits ``"progress"`` (TransferProgressEvent) after every entry that
    succeeds. The first failure halts the batch; entries already moved or
    copied stay where they are.
    """

    def __init__(self, transport: ITransport):
        self._transport = transport
        self.events = EventEmitter()

    async def run(self, batch: TransferBatch) -> TransferResult:
        verb = "Moving" if batch.mode == TransferMode.MOVE else "Copying"
        logger.info(f"{verb} {batch.total_count} entries from {batch.source_bucket}")
        succeeded: List[str] = []

        for entry in batch.entries:
            try:
                await self._transfer_entry(batch, entry)
            except Exception as exc:
                logger.error(
                    f"{verb} {batch.source_bucket}/{entry.key} failed after "
                    f"{batch.completed_count}/{batch.total_count}: {exc}"
                )
                return TransferResult.fail(batch, succeeded, entry.key, str(exc))

            batch.record_success()
            succeeded.append(entry.key)
            await self.events.emit(
                "progress",
                TransferProgressEvent(entry.key, batch.completed_count, batch.total_count),
            )

        logger.info(f"{verb} finished: {batch.completed_count}/{batch.total_count}")
        return TransferResult.ok(batch, succeeded)

    async def _transfer_entry(self, batch: TransferBatch, entry: TransferEntry) -> None:
        dest = entry.destination
        move = batch.mode == TransferMode.MOVE

        if entry.is_folder:
            dest_path = folder_destination_path(entry.key, dest.path)
            operation = self._transport.move_folder if move else self._transport.copy_folder
        else:
            dest_path = dest.path.strip("/") or None
            operation = self._transport.move_object if move else self._transport.copy_object

        logger.debug(f"{batch.mode.value} {entry.key} -> {dest.bucket}/{dest_path or ''}")
        await operation(batch.source_bucket, entry.key, dest.bucket, dest_path)
