"""Chunked uploads to ledger file storage with indexer read-back."""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings

from utils.retry import DEFAULT_ATTEMPTS, DEFAULT_INITIAL_DELAY, retry_with_backoff

from .exceptions import FileUploadError, IndexerError, LedgerError
from .ledger import LedgerGateway
from .mirror import MirrorNodeClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK = 4096


def _chunks(payload: bytes, size: int):
    for offset in range(0, len(payload), size):
        yield payload[offset : offset + size]


class LedgerFileStore:
    """Write byte payloads to ledger files in sequential chunks."""

    def __init__(
        self,
        ledger: LedgerGateway,
        mirror: MirrorNodeClient,
        *,
        retry_attempts: Optional[int] = None,
        retry_initial_delay: Optional[float] = None,
        sleep=None,
    ):
        self.ledger = ledger
        self.mirror = mirror
        self.retry_attempts = (
            retry_attempts
            if retry_attempts is not None
            else int(getattr(settings, "LEDGER_INDEXER_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS))
        )
        self.retry_initial_delay = (
            retry_initial_delay
            if retry_initial_delay is not None
            else float(
                getattr(settings, "LEDGER_INDEXER_RETRY_INITIAL_DELAY", DEFAULT_INITIAL_DELAY)
            )
        )
        self._sleep = sleep

    def upload(self, payload: bytes, *, name: str = "", max_chunk: int = DEFAULT_MAX_CHUNK) -> str:
        """Store ``payload`` and return the new file id.

        The first chunk creates the file and every later chunk is appended in
        order. The first non-success acknowledgment aborts the upload; the
        partially written file is abandoned and the caller may retry.
        """

        if not payload:
            raise FileUploadError("Refusing to upload an empty payload.")
        if max_chunk < 1:
            raise ValueError("max_chunk must be a positive integer.")

        pieces = list(_chunks(payload, max_chunk))
        context = {"name": name, "size": len(payload), "chunks": len(pieces)}
        logger.info("Uploading %s to ledger file storage", name or "payload", extra={"context": context})

        try:
            receipt = self.ledger.create_file(pieces[0], memo=name)
        except LedgerError as exc:
            raise FileUploadError(f"File create failed: {exc}", status=exc.status, chunk_index=0) from exc
        if not receipt.succeeded or not receipt.file_id:
            raise FileUploadError(
                f"File create returned {receipt.status}", status=receipt.status, chunk_index=0
            )

        file_id = receipt.file_id
        for index, piece in enumerate(pieces[1:], start=1):
            try:
                receipt = self.ledger.append_file(file_id, piece)
            except LedgerError as exc:
                raise FileUploadError(
                    f"Append of chunk {index} to {file_id} failed: {exc}",
                    status=exc.status,
                    chunk_index=index,
                ) from exc
            if not receipt.succeeded:
                raise FileUploadError(
                    f"Append of chunk {index} to {file_id} returned {receipt.status}",
                    status=receipt.status,
                    chunk_index=index,
                )

        logger.info("Stored %s as %s", name or "payload", file_id, extra={"context": context})
        return file_id

    def read(self, file_id: str) -> bytes:
        """Read a file back through the indexer, waiting for it to catch up."""

        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return retry_with_backoff(
            lambda: self.mirror.get_file(file_id),
            attempts=self.retry_attempts,
            initial_delay=self.retry_initial_delay,
            retry_on=(IndexerError,),
            description=f"read of file {file_id}",
            **kwargs,
        )


__all__ = ["DEFAULT_MAX_CHUNK", "LedgerFileStore"]
