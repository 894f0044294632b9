"""Import orchestration: login, snapshot destination, filter, publish or sweep."""

import logging
from pathlib import Path

import httpx

from teal_importer.cancellation import CancellationToken
from teal_importer.exceptions import MissingAuthenticationError
from teal_importer.existing import fetch_all_records, fetch_existing_records, filter_new_records, summarize_sync
from teal_importer.publisher import Publisher, PublishResult
from teal_importer.reporting import LoggingReporter, ProgressReporter
from teal_importer.settings import ImporterSettings
from teal_importer.sweeper import DuplicateSweeper, SweepResult
from teal_shared.atproto.client import AtprotoClient
from teal_shared.atproto.exceptions import AtprotoClientError
from teal_shared.records.parser import ExportParser

logger = logging.getLogger(__name__)


class ImportService:
    """Runs one import or one duplicate sweep against the configured account.

    Nothing is persisted locally: each run re-reads the destination, so an
    interrupted import resumes by simply running it again.
    """

    def __init__(
        self,
        settings: ImporterSettings,
        *,
        client: AtprotoClient | None = None,
        parser: ExportParser | None = None,
        reporter: ProgressReporter | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or AtprotoClient(settings.ATPROTO_PDS_URL)
        self._parser = parser or ExportParser()
        self._reporter = reporter or LoggingReporter()
        self._cancel_token = cancel_token or CancellationToken()

    @property
    def has_credentials(self) -> bool:
        return bool(self._settings.ATPROTO_IDENTIFIER and self._settings.ATPROTO_APP_PASSWORD)

    async def login(self) -> None:
        """Create a PDS session unless the client already has one."""
        if self._client.did:
            return
        if not self.has_credentials:
            raise MissingAuthenticationError("ATPROTO_IDENTIFIER and ATPROTO_APP_PASSWORD must be set")
        try:
            await self._client.create_session(self._settings.ATPROTO_IDENTIFIER, self._settings.ATPROTO_APP_PASSWORD)
        except (AtprotoClientError, httpx.HTTPError, ValueError) as exc:
            raise MissingAuthenticationError(f"Login failed: {exc}") from exc

    async def run_import(
        self,
        export_path: Path,
        *,
        dry_run: bool = False,
        batch_delay: float | None = None,
    ) -> PublishResult:
        """Import every record from ``export_path`` not already in the repo."""
        records = self._parser.load_records(export_path)
        logger.info("Loaded %d records from %s", len(records), export_path)

        if dry_run and not self.has_credentials and not self._client.did:
            logger.warning("No credentials configured; dry run treats every record as new")
            new_records, _ = filter_new_records(records, {})
        else:
            await self.login()
            existing = await fetch_existing_records(
                self._client,
                self._settings.RECORD_TYPE,
                page_size=self._settings.LIST_PAGE_SIZE,
                reporter=self._reporter,
            )
            new_records, _ = filter_new_records(records, existing)
            summarize_sync(records, existing, new_records)

        if not new_records:
            self._reporter.message("All records are already imported, nothing to do")
            return PublishResult()

        publisher = Publisher(
            self._client,
            self._settings,
            reporter=self._reporter,
            cancel_token=self._cancel_token,
        )
        return await publisher.publish(new_records, dry_run=dry_run, batch_delay=batch_delay)

    async def run_dedupe(self, *, dry_run: bool = False) -> SweepResult:
        """Remove duplicate plays already stored in the repo."""
        await self.login()
        records = await fetch_all_records(
            self._client,
            self._settings.RECORD_TYPE,
            page_size=self._settings.LIST_PAGE_SIZE,
            reporter=self._reporter,
        )
        sweeper = DuplicateSweeper(
            self._client,
            self._settings,
            reporter=self._reporter,
            cancel_token=self._cancel_token,
        )
        return await sweeper.sweep(records, dry_run=dry_run)
