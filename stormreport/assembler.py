"""
Report assembly - project, photos, and configuration in; ReportDocument out.

Pure and deterministic: no I/O, no clock reads, inputs never mutated.
The only failure is an incomplete project; every other gap (no photos,
no insurance data, empty notes) just yields a smaller document.
"""

from collections.abc import Iterable
from datetime import datetime

import structlog

from stormreport.models import (
    ProjectRecord,
    PhotoRecord,
    CompanyProfile,
    ReportConfiguration,
    ReportDocument,
    ReportField,
    CoverPage,
    ClientInfoSection,
    InsuranceInfoSection,
    PhotoGridSection,
    NotesSection,
    PhotoEntry,
    ImageVariant,
    IncompleteProject,
    default_report_name,
)
from stormreport.config import PHOTOS_PER_PAGE

logger = structlog.get_logger(__name__)


# Rendered in this order, only when non-empty.
CLIENT_FIELDS: tuple[tuple[str, str], ...] = (
    ("client_name", "Client Name"),
    ("incident_date", "Incident Date"),
    ("client_phone", "Phone Number"),
    ("client_email", "Email Address"),
    ("address", "Address"),
    ("city", "City"),
    ("state", "State"),
    ("zip_code", "ZIP Code"),
    ("damage_type", "Type of Damage"),
    ("severity_level", "Severity Level"),
    ("notes", "Project Notes"),
)

INSURANCE_FIELDS: tuple[tuple[str, str], ...] = (
    ("insurance_company", "Insurance Company"),
    ("claim_number", "Claim Number"),
    ("adjuster_name", "Adjuster Name"),
    ("adjuster_phone", "Adjuster Phone"),
)


# --- Public API ---

def validate_project(project: ProjectRecord) -> None:
    """
    Minimal identity check for report generation.

    Raises:
        IncompleteProject: If the client name is blank.
    """
    if not project.client_name.strip():
        raise IncompleteProject("Client name is required to generate a report")


def assemble_report(
    project: ProjectRecord,
    photos: Iterable[PhotoRecord],
    config: ReportConfiguration,
    generated_at: datetime | None = None,
    company: CompanyProfile | None = None,
) -> ReportDocument:
    """
    Builds the report document.

    Section order is fixed: cover, client info, insurance info, photo grid,
    additional notes. Each is skipped when its toggle is off or it has no
    content. Photos still ingesting are left out and listed in
    skipped_photo_ids.

    Raises:
        IncompleteProject: If the project has no client name.
    """
    validate_project(project)

    title = config.report_name.strip() or default_report_name(project)
    selected, skipped = _select_photos(photos, config)

    sections = []

    if config.cover_page:
        sections.append(_cover_page(title, project, company))

    if config.include_client_info:
        fields = _fields(project, CLIENT_FIELDS)
        if fields:
            sections.append(ClientInfoSection(fields=fields))

    if config.include_insurance_info:
        fields = _fields(project, INSURANCE_FIELDS)
        if fields:
            sections.append(InsuranceInfoSection(fields=fields))

    if selected:
        sections.append(_photo_grid(selected, config))

    notes = config.additional_notes.strip()
    if notes:
        sections.append(NotesSection(text=notes))

    document = ReportDocument(
        title=title,
        sections=sections,
        generated_at=generated_at,
        skipped_photo_ids=skipped,
    )

    logger.info(
        "report_assembled",
        title=title,
        sections=document.section_kinds,
        photos=len(selected),
        skipped=len(skipped),
    )
    return document


# --- Internal ---

def _select_photos(
    photos: Iterable[PhotoRecord],
    config: ReportConfiguration,
) -> tuple[list[PhotoRecord], list[str]]:
    """Ready photos in insertion order, plus ids of those still ingesting."""
    if not config.include_all_photos:
        return [], []

    ordered = sorted(photos, key=lambda p: p.order)
    selected = [photo for photo in ordered if photo.is_ready]
    skipped = [photo.id for photo in ordered if not photo.is_ready]
    return selected, skipped


def _photo_grid(photos: list[PhotoRecord], config: ReportConfiguration) -> PhotoGridSection:
    variant = ImageVariant.FULL if config.high_resolution else ImageVariant.PREVIEW

    entries = [
        PhotoEntry(
            photo_id=photo.id,
            number=number,
            order=photo.order,
            filename=photo.filename,
            media_type=photo.media_type,
            image_bytes=photo.image_bytes,
            variant=variant,
            notes=photo.notes.strip() if config.include_notes else None,
        )
        for number, photo in enumerate(photos, start=1)
    ]
    return PhotoGridSection(entries=entries, entries_per_page=PHOTOS_PER_PAGE)


def _cover_page(
    title: str,
    project: ProjectRecord,
    company: CompanyProfile | None,
) -> CoverPage:
    location = ", ".join(
        part for part in (
            project.address.strip(),
            project.city.strip(),
            " ".join(p for p in (project.state.strip(), project.zip_code.strip()) if p),
        )
        if part
    )
    summary = project.client_name.strip()
    if location:
        summary = f"{summary}, {location}"

    return CoverPage(
        title=title,
        client_summary=summary,
        incident_date=project.incident_date,
        prepared_by=_company_lines(company),
    )


def _company_lines(company: CompanyProfile | None) -> list[str]:
    if company is None:
        return []

    city_line = ", ".join(
        part for part in (
            company.city.strip(),
            " ".join(p for p in (company.state.strip(), company.zip_code.strip()) if p),
        )
        if part
    )
    lines = [
        company.name,
        company.address,
        city_line,
        company.phone,
        company.email,
        company.website,
        f"License #{company.license_number}" if company.license_number.strip() else "",
        company.additional_info,
    ]
    return [line.strip() for line in lines if line and line.strip()]


def _fields(project: ProjectRecord, layout: tuple[tuple[str, str], ...]) -> list[ReportField]:
    fields = []
    for attr, label in layout:
        value = getattr(project, attr)
        if value is None:
            continue
        text = value.isoformat() if attr == "incident_date" else str(value).strip()
        if text:
            fields.append(ReportField(label=label, value=text))
    return fields
