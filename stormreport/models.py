"""
Domain models for the storm damage report system.

All Pydantic models in one place. Imported by the photo store, ingestion,
assembler, export, and session modules. Single source of truth for data
contracts.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from stormreport.config import (
    DEFAULT_REPORT_NAME,
    MAX_PHOTO_SIZE_BYTES,
    PROGRESS_COMPLETE,
    REPORT_NAME_SUFFIX,
)


# --- Domain Enums ---

class DamageType(str, Enum):
    """Suggested damage categories. Projects may still carry free text."""
    WIND = "Wind Damage"
    HAIL = "Hail Damage"
    WATER = "Water Damage"
    FLOOD = "Flood Damage"
    LIGHTNING = "Lightning Damage"
    TORNADO = "Tornado Damage"
    HURRICANE = "Hurricane Damage"
    FIRE = "Fire Damage"
    OTHER = "Other"


class SeverityLevel(str, Enum):
    MINOR = "Minor"
    MODERATE = "Moderate"
    SEVERE = "Severe"
    CATASTROPHIC = "Catastrophic"


class ImageVariant(str, Enum):
    """
    Which binary variant of a photo gets embedded in the report.
    Inherits str so it serializes to "full" / "preview" without conversion.
    """
    FULL = "full"
    PREVIEW = "preview"


# --- Photo Context ---

class PhotoUpload(BaseModel):
    """A file offered for ingestion, before it becomes a PhotoRecord."""
    filename: str
    media_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class PhotoRecord(BaseModel):
    """
    One photo owned by the store.

    Frozen: the store replaces records on every change, so any snapshot
    handed out by list() stays consistent.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    media_type: str
    image_bytes: bytes = Field(repr=False)
    size_bytes: int = Field(ge=0, le=MAX_PHOTO_SIZE_BYTES)
    order: int = Field(ge=0)
    notes: str = ""

    # Ingestion state, advanced by PhotoIngestor
    progress: int = Field(0, ge=0, le=PROGRESS_COMPLETE)
    width: int | None = None
    height: int | None = None
    ingest_error: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.progress == PROGRESS_COMPLETE


# --- Project Context ---

class ProjectRecord(BaseModel):
    """Client, location, damage, and insurance facts for one project."""
    client_name: str = ""
    client_phone: str = ""
    client_email: str = ""
    incident_date: date | None = None

    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    damage_type: str = ""
    severity_level: str = ""

    insurance_company: str = ""
    claim_number: str = ""
    adjuster_name: str = ""
    adjuster_phone: str = ""

    notes: str = ""

    @property
    def is_complete(self) -> bool:
        """Client name and incident date are the only required fields."""
        return bool(self.client_name.strip()) and self.incident_date is not None


class CompanyProfile(BaseModel):
    """Contractor details printed on the cover page."""
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    license_number: str = ""
    additional_info: str = ""
    logo_bytes: bytes | None = Field(None, repr=False)


# --- Report Configuration ---

class ReportConfiguration(BaseModel):
    """Toggles and strings controlling report composition. Any combination is valid."""
    model_config = ConfigDict(extra="forbid")

    include_all_photos: bool = True
    include_notes: bool = True
    include_client_info: bool = True
    include_insurance_info: bool = True
    high_resolution: bool = True
    cover_page: bool = True
    report_name: str = ""
    additional_notes: str = ""

    @classmethod
    def for_project(cls, project: ProjectRecord) -> "ReportConfiguration":
        return cls(report_name=default_report_name(project))


def default_report_name(project: ProjectRecord) -> str:
    client_name = project.client_name.strip()
    if client_name:
        return f"{client_name} - {REPORT_NAME_SUFFIX}"
    return DEFAULT_REPORT_NAME


# --- Report Document ---

class ReportField(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    value: str


class PhotoEntry(BaseModel):
    """One photo as placed in the grid. notes is None when notes are excluded."""
    model_config = ConfigDict(frozen=True)

    photo_id: str
    number: int = Field(ge=1)
    order: int = Field(ge=0)
    filename: str
    media_type: str
    image_bytes: bytes = Field(repr=False)
    variant: ImageVariant
    notes: str | None = None


class CoverPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["cover"] = "cover"
    title: str
    client_summary: str
    incident_date: date | None = None
    prepared_by: list[str] = []


class ClientInfoSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["client_info"] = "client_info"
    fields: list[ReportField]


class InsuranceInfoSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["insurance_info"] = "insurance_info"
    fields: list[ReportField]


class PhotoGridSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["photo_grid"] = "photo_grid"
    entries: list[PhotoEntry]
    entries_per_page: int = Field(ge=1)

    @property
    def pages(self) -> list[list[PhotoEntry]]:
        """Entries split into print pages, order preserved."""
        size = self.entries_per_page
        return [self.entries[i:i + size] for i in range(0, len(self.entries), size)]


class NotesSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["notes"] = "notes"
    text: str


ReportSection = Annotated[
    Union[CoverPage, ClientInfoSection, InsuranceInfoSection, PhotoGridSection, NotesSection],
    Field(discriminator="kind"),
]


class ReportDocument(BaseModel):
    """Assembled report. Immutable; regenerate to pick up new inputs."""
    model_config = ConfigDict(frozen=True)

    title: str
    sections: list[ReportSection]
    generated_at: datetime | None = None
    skipped_photo_ids: list[str] = []

    @property
    def section_kinds(self) -> list[str]:
        return [section.kind for section in self.sections]

    @property
    def photo_count(self) -> int:
        return sum(
            len(section.entries)
            for section in self.sections
            if isinstance(section, PhotoGridSection)
        )


class ReportArtifact(BaseModel):
    """Encoded report ready for download or email."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    data: bytes = Field(repr=False)


# --- Exceptions ---

class CapacityExceeded(Exception):
    """Batch would push the project past its photo limit."""
    pass


class InvalidMediaType(Exception):
    """Declared media type is not an image type."""
    pass


class FileTooLarge(Exception):
    """Photo exceeds the per-file size limit."""
    pass


class PhotoNotFound(Exception):
    """Requested photo does not exist (or was removed)."""
    pass


class IncompleteProject(Exception):
    """Project lacks the minimal identity needed for a report."""
    pass


class ReportNotGenerated(Exception):
    """Export requested before a report was generated."""
    pass


class EncodingError(Exception):
    """Report could not be encoded to its output format."""
    pass


class InvalidRecipient(Exception):
    """Email recipient is empty or malformed."""
    pass


class DeliveryError(Exception):
    """Email transport failed."""
    pass


class ImageDecodeError(Exception):
    """Photo bytes could not be decoded as an image."""
    pass
