"""
Export sink - encode a ReportDocument to PDF and deliver it.

Two delivery modes: a downloadable artifact, or an email to a single
recipient sent through Amazon SES. The assembler never sees the byte
format; everything reportlab- and SES-specific is isolated here.
"""

import io
from email.message import EmailMessage
from xml.sax.saxutils import escape

import boto3
import structlog
from pydantic import EmailStr, TypeAdapter, ValidationError as PydanticValidationError
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    Image as RLImage,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from stormreport.imaging import render_variant, scale_to_fit
from stormreport.models import (
    ReportDocument,
    ReportArtifact,
    CompanyProfile,
    CoverPage,
    ClientInfoSection,
    InsuranceInfoSection,
    PhotoGridSection,
    NotesSection,
    PhotoEntry,
    ReportField,
    EncodingError,
    InvalidRecipient,
    DeliveryError,
)
from stormreport.config import (
    GRID_COLUMNS,
    REPORT_CONTENT_TYPE,
    REPORT_SENDER_EMAIL,
    AWS_REGION,
)

logger = structlog.get_logger(__name__)

PAGE_MARGIN = 0.6 * inch
CELL_IMAGE_HEIGHT = 2.0 * inch
CAPTION_MAX_CHARS = 200
LONG_FIELD_CHARS = 300
ACCENT = colors.HexColor("#1F3A5F")
RULE = colors.HexColor("#E5E5E5")

_email_adapter = TypeAdapter(EmailStr)


# --- SES client cache ---

_ses = None


def _get_ses():
    """Lazy-initialized SES client with caching."""
    global _ses

    if _ses is not None:
        return _ses

    _ses = boto3.client("ses", region_name=AWS_REGION)
    return _ses


def clear_client_cache() -> None:
    """Clears cached SES client. Testing only."""
    global _ses
    _ses = None


# --- Public API ---

def encode_report(document: ReportDocument, company: CompanyProfile | None = None) -> bytes:
    """
    Renders the document to PDF bytes.

    Raises:
        EncodingError: If any part of the document cannot be rendered.
    """
    try:
        buf = io.BytesIO()
        doc = SimpleDocTemplate(
            buf,
            pagesize=letter,
            leftMargin=PAGE_MARGIN,
            rightMargin=PAGE_MARGIN,
            topMargin=PAGE_MARGIN,
            bottomMargin=PAGE_MARGIN,
            title=document.title,
        )
        styles = _styles()
        usable_width = letter[0] - 2 * PAGE_MARGIN

        story = []
        for section in document.sections:
            if isinstance(section, CoverPage):
                story.extend(_cover_flowables(section, document, company, styles))
            elif isinstance(section, ClientInfoSection):
                story.extend(_field_table("Client Information", section.fields, styles, usable_width))
            elif isinstance(section, InsuranceInfoSection):
                story.extend(_field_table("Insurance Information", section.fields, styles, usable_width))
            elif isinstance(section, PhotoGridSection):
                story.extend(_photo_flowables(section, styles, usable_width))
            elif isinstance(section, NotesSection):
                story.extend(_notes_flowables(section, styles))

        if not story:
            story.append(Paragraph(escape(document.title), styles["ReportTitle"]))

        doc.build(story)
        data = buf.getvalue()
    except Exception as e:
        raise EncodingError(f"Failed to encode report '{document.title}': {e}")

    logger.info("report_encoded", title=document.title, size_bytes=len(data))
    return data


def build_artifact(document: ReportDocument, data: bytes) -> ReportArtifact:
    """Wraps encoded bytes for download."""
    return ReportArtifact(
        filename=report_filename(document.title),
        content_type=REPORT_CONTENT_TYPE,
        data=data,
    )


def deliver_email(
    artifact: ReportArtifact,
    recipient: str,
    subject: str | None = None,
    body: str | None = None,
) -> str:
    """
    Emails the artifact as an attachment to exactly one recipient.

    Returns the SES message id.

    Raises:
        InvalidRecipient: If the address is empty or malformed (nothing is sent).
        DeliveryError: If SES rejects or fails the send.
    """
    address = validate_recipient(recipient)
    title = artifact.filename.rsplit(".", 1)[0].replace("_", " ")

    message = EmailMessage()
    message["From"] = REPORT_SENDER_EMAIL
    message["To"] = address
    message["Subject"] = subject or title
    message.set_content(body or f"Please find the attached report: {title}.")
    maintype, _, subtype = artifact.content_type.partition("/")
    message.add_attachment(
        artifact.data,
        maintype=maintype,
        subtype=subtype,
        filename=artifact.filename,
    )

    try:
        response = _get_ses().send_raw_email(
            Source=REPORT_SENDER_EMAIL,
            Destinations=[address],
            RawMessage={"Data": message.as_bytes()},
        )
    except Exception as e:
        logger.warning("report_delivery_failed", recipient=address, error=str(e))
        raise DeliveryError(f"Failed to send report to {address}: {e}")

    message_id = response.get("MessageId", "")
    logger.info("report_emailed", recipient=address, message_id=message_id)
    return message_id


def validate_recipient(recipient: str | None) -> str:
    """
    Normalizes a single email address.

    Raises:
        InvalidRecipient: If empty or not a valid address.
    """
    if not recipient or not recipient.strip():
        raise InvalidRecipient("Please enter an email address to send the report")
    try:
        return str(_email_adapter.validate_python(recipient.strip()))
    except PydanticValidationError:
        raise InvalidRecipient(f"Invalid email address: {recipient}")


def report_filename(title: str) -> str:
    """Filesystem-safe PDF name derived from the report title."""
    bad_chars = '<>:"/\\|?*'
    text = title
    for ch in bad_chars:
        text = text.replace(ch, " ")
    stem = "_".join(text.split()) or "report"
    return f"{stem}.pdf"


# --- Rendering ---

def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "ReportTitle": ParagraphStyle(
            "ReportTitle", parent=base["Title"], fontSize=26, leading=32, textColor=ACCENT,
        ),
        "Heading": ParagraphStyle(
            "Heading", parent=base["Heading2"], textColor=ACCENT, spaceBefore=12, spaceAfter=6,
        ),
        "Body": ParagraphStyle("Body", parent=base["BodyText"], fontSize=10, leading=13),
        "Center": ParagraphStyle("Center", parent=base["BodyText"], alignment=1, fontSize=12, leading=16),
        "Caption": ParagraphStyle("Caption", parent=base["BodyText"], fontSize=8, leading=10),
        "Label": ParagraphStyle("Label", parent=base["BodyText"], fontName="Helvetica-Bold", fontSize=9),
    }


def _cover_flowables(section: CoverPage, document: ReportDocument, company, styles) -> list:
    flow = []
    if company is not None and company.logo_bytes:
        logo = ImageReader(io.BytesIO(company.logo_bytes))
        w, h = scale_to_fit(*logo.getSize(), 2.5 * inch, 1.2 * inch)
        flow.append(RLImage(io.BytesIO(company.logo_bytes), width=w, height=h))
        flow.append(Spacer(1, 0.3 * inch))

    flow.append(Spacer(1, 1.5 * inch))
    flow.append(Paragraph(escape(section.title), styles["ReportTitle"]))
    flow.append(Spacer(1, 0.3 * inch))
    flow.append(Paragraph(escape(section.client_summary), styles["Center"]))

    if section.incident_date is not None:
        flow.append(Paragraph(f"Incident Date: {section.incident_date.isoformat()}", styles["Center"]))
    if document.generated_at is not None:
        flow.append(Paragraph(f"Report Date: {document.generated_at.date().isoformat()}", styles["Center"]))

    if section.prepared_by:
        flow.append(Spacer(1, 1.0 * inch))
        flow.append(Paragraph("Prepared by", styles["Center"]))
        for line in section.prepared_by:
            flow.append(Paragraph(escape(line), styles["Center"]))

    flow.append(PageBreak())
    return flow


def _field_table(heading: str, fields: list[ReportField], styles, width: float) -> list:
    short = [f for f in fields if len(f.value) <= LONG_FIELD_CHARS]
    overflow = [f for f in fields if len(f.value) > LONG_FIELD_CHARS]

    flow = [Paragraph(heading, styles["Heading"])]
    if short:
        rows = [
            [Paragraph(escape(f.label), styles["Label"]), Paragraph(escape(f.value), styles["Body"])]
            for f in short
        ]
        table = Table(rows, colWidths=[width * 0.3, width * 0.7], hAlign="LEFT")
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LINEBELOW", (0, 0), (-1, -1), 0.25, RULE),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]))
        flow.append(table)

    # Table rows cannot break across pages; long values flow as plain paragraphs
    for f in overflow:
        flow.append(Spacer(1, 0.1 * inch))
        flow.append(Paragraph(escape(f.label), styles["Label"]))
        flow.extend(_text_paragraphs(f.value, styles["Body"]))

    flow.append(Spacer(1, 0.2 * inch))
    return flow


def _photo_flowables(section: PhotoGridSection, styles, width: float) -> list:
    cell_width = width / GRID_COLUMNS
    flow = [Paragraph("Photo Documentation", styles["Heading"])]

    pages = section.pages
    for page_number, page in enumerate(pages, start=1):
        rows, row = [], []
        for entry in page:
            row.append(_photo_cell(entry, styles, cell_width - 8))
            if len(row) == GRID_COLUMNS:
                rows.append(row)
                row = []
        if row:
            row.extend([""] * (GRID_COLUMNS - len(row)))
            rows.append(row)

        grid = Table(rows, colWidths=[cell_width] * GRID_COLUMNS)
        grid.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 4),
            ("RIGHTPADDING", (0, 0), (-1, -1), 4),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ]))
        flow.append(grid)

        for entry in page:
            if entry.notes and len(entry.notes) > CAPTION_MAX_CHARS:
                flow.append(Spacer(1, 0.1 * inch))
                flow.append(Paragraph(f"Photo {entry.number} notes", styles["Label"]))
                flow.extend(_text_paragraphs(entry.notes, styles["Caption"]))

        if page_number < len(pages):
            flow.append(PageBreak())

    flow.append(Spacer(1, 0.2 * inch))
    return flow


def _photo_cell(entry: PhotoEntry, styles, width: float) -> Table:
    data = render_variant(entry.image_bytes, entry.variant)
    reader = ImageReader(io.BytesIO(data))
    w, h = scale_to_fit(*reader.getSize(), width, CELL_IMAGE_HEIGHT)

    parts = [
        [RLImage(io.BytesIO(data), width=w, height=h)],
        [Paragraph(f"Photo {entry.number}", styles["Label"])],
    ]
    if entry.notes:
        parts.append([Paragraph(escape(_caption(entry.notes)), styles["Caption"])])

    cell = Table(parts, colWidths=[width])
    cell.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("BOX", (0, 0), (-1, -1), 0.25, RULE),
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))
    return cell


def _caption(notes: str) -> str:
    """Notes short enough for the grid cell; longer ones are continued below the grid."""
    if len(notes) <= CAPTION_MAX_CHARS:
        return notes
    head = notes[:CAPTION_MAX_CHARS].rsplit(" ", 1)[0].rstrip()
    return f"{head}... (continued below)"


def _notes_flowables(section: NotesSection, styles) -> list:
    flow = [Paragraph("Additional Notes", styles["Heading"])]
    flow.extend(_text_paragraphs(section.text, styles["Body"]))
    return flow


def _text_paragraphs(text: str, style) -> list:
    flow = []
    for paragraph in text.split("\n\n"):
        flow.append(Paragraph(escape(paragraph).replace("\n", "<br/>"), style))
        flow.append(Spacer(1, 0.1 * inch))
    return flow
