"""Captured output retrieval.

The command service writes each invocation's stdout/stderr to the object
store under ``{key_prefix}/{dispatch_id}/...``. :class:`OutputRetriever`
lists that prefix and yields each object lazily, so the orchestrator (or
any other caller) decides whether to log, persist or ignore it.

Output retrieval is best-effort:
    - no output location -> nothing is yielded and no store call is made
    - a failed region lookup or listing raises OutputRetrievalError, which
      callers are expected to log and swallow
    - a failed fetch of one object is logged and skipped; the rest are
      still yielded
"""

from __future__ import annotations

from collections.abc import Iterator

from fleetspine.command.models import CommandOutput, OutputLocation
from fleetspine.core.errors import OutputRetrievalError
from fleetspine.core.logging import get_logger
from fleetspine.core.protocols import ObjectStore

logger = get_logger(__name__)


def output_prefix(location: OutputLocation, dispatch_id: str) -> str:
    """Listing prefix for a dispatch's output objects."""
    if location.key_prefix:
        return f"{location.key_prefix}/{dispatch_id}"
    return dispatch_id


class OutputRetriever:
    """Lists and fetches a dispatch's captured output objects."""

    def __init__(self, store: ObjectStore, max_keys: int = 1000) -> None:
        self.store = store
        self.max_keys = max_keys

    def collect(self, location: OutputLocation | None, dispatch_id: str) -> Iterator[CommandOutput]:
        """Yield every output object of ``dispatch_id``.

        The bucket may live in a different region than the default client,
        so listing and fetching go through a region-pinned store.
        """
        if location is None or not location.bucket:
            logger.info("command.output.not_configured")
            return

        bucket = location.bucket
        prefix = output_prefix(location, dispatch_id)

        try:
            region = self.store.get_bucket_region(bucket)
            store = self.store.for_region(region)
            keys = store.list_keys(bucket, prefix, self.max_keys)
        except OutputRetrievalError:
            raise
        except Exception as e:
            raise OutputRetrievalError(
                f"output: listing s3://{bucket}/{prefix} failed: {e}", cause=e
            ).with_context(dispatch_id=dispatch_id, bucket=bucket) from e

        logger.debug("command.output.listed", bucket=bucket, prefix=prefix, count=len(keys))

        for key in keys:
            try:
                content = store.get_object(bucket, key)
            except Exception as e:
                logger.error("command.output.fetch_failed", bucket=bucket, key=key, error=str(e))
                continue
            yield CommandOutput(key=key, content=content)


__all__ = ["OutputRetriever", "output_prefix"]
