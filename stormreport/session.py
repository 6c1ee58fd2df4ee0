"""
Project session - orchestrates one project's report workflow.

Coordinates the photo store, ingestion, assembler, and export sink for a
single logical owner (one UI session). Holds no business logic beyond
sequencing and the "must generate before export" rule.
"""

from datetime import datetime
from collections.abc import Iterable

import structlog

from stormreport.photo_store import PhotoStore
from stormreport.ingestion import PhotoIngestor
from stormreport.assembler import assemble_report
from stormreport.export import encode_report, build_artifact, deliver_email, validate_recipient
from stormreport.models import (
    ProjectRecord,
    CompanyProfile,
    PhotoRecord,
    PhotoUpload,
    ReportConfiguration,
    ReportDocument,
    ReportArtifact,
    IncompleteProject,
    ReportNotGenerated,
    default_report_name,
)

logger = structlog.get_logger(__name__)


class ProjectSession:
    """State for one project: record, photos, report settings, last report."""

    def __init__(
        self,
        project: ProjectRecord | None = None,
        company: CompanyProfile | None = None,
        store: PhotoStore | None = None,
    ):
        self.project = project or ProjectRecord()
        self.company = company
        self.store = store or PhotoStore()
        self.ingestor = PhotoIngestor(self.store)
        self.config = ReportConfiguration.for_project(self.project)
        self.report: ReportDocument | None = None
        self._custom_report_name = False

    # --- Project ---

    def save_project(self, project: ProjectRecord) -> ProjectRecord:
        """
        Replaces the project record.

        Raises:
            IncompleteProject: If client name or incident date is missing.
        """
        if not project.is_complete:
            raise IncompleteProject("Please fill out client name and date at minimum")

        self.project = project
        if not self._custom_report_name:
            self.config = self.config.model_copy(update={"report_name": default_report_name(project)})

        logger.info("project_saved", client_name=project.client_name)
        return project

    # --- Photos ---

    async def add_photos(self, files: Iterable[PhotoUpload]) -> list[PhotoRecord]:
        """
        Adds a batch and starts ingestion without waiting for it.

        Raises:
            CapacityExceeded, InvalidMediaType, FileTooLarge: batch rejected whole.
        """
        records = self.store.add(files)
        self.ingestor.start(record.id for record in records)
        return records

    def remove_photo(self, photo_id: str) -> None:
        """
        Raises:
            PhotoNotFound: If the photo does not exist.
        """
        self.store.remove(photo_id)
        self.ingestor.cancel(photo_id)

    def update_notes(self, photo_id: str, notes: str) -> PhotoRecord:
        return self.store.update_notes(photo_id, notes)

    # --- Report ---

    def configure(self, **changes) -> ReportConfiguration:
        """
        Updates report settings by field name.

        Raises:
            pydantic.ValidationError: On unknown fields or wrong types.
        """
        self.config = ReportConfiguration.model_validate({**self.config.model_dump(), **changes})
        if "report_name" in changes:
            self._custom_report_name = bool(self.config.report_name.strip())
        return self.config

    def generate(self, generated_at: datetime | None = None) -> ReportDocument:
        """
        Assembles a fresh report from current state.

        Raises:
            IncompleteProject: If the project has no client name.
        """
        self.report = assemble_report(
            self.project,
            self.store.list(),
            self.config,
            generated_at=generated_at,
            company=self.company,
        )
        return self.report

    def download(self) -> ReportArtifact:
        """
        Raises:
            ReportNotGenerated: If generate() has not run.
            EncodingError: If PDF rendering fails.
        """
        report = self._require_report()
        return build_artifact(report, encode_report(report, self.company))

    def email(self, recipient: str, subject: str | None = None) -> str:
        """
        Sends the last generated report to one recipient.

        Raises:
            InvalidRecipient: If the address is empty or malformed.
            ReportNotGenerated: If generate() has not run.
            EncodingError, DeliveryError: On render or send failure.
        """
        address = validate_recipient(recipient)
        artifact = self.download()
        return deliver_email(artifact, address, subject=subject)

    def _require_report(self) -> ReportDocument:
        if self.report is None:
            raise ReportNotGenerated("Generate the report before downloading or sending it")
        return self.report
