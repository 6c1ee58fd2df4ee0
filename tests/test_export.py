"""
Unit tests for export module

Tests cover:
- PDF encoding (real reportlab + Pillow, no mocks), including multi-page notes
- Image variants and EXIF orientation
- Artifact naming
- Recipient validation
- Email delivery via SES (boto3 mocked)
"""

import email
import io
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image
from reportlab.lib.utils import ImageReader

from stormreport.assembler import assemble_report
from stormreport.export import (
    encode_report,
    build_artifact,
    deliver_email,
    validate_recipient,
    report_filename,
    clear_client_cache,
    _caption,
    CAPTION_MAX_CHARS,
)
from stormreport.imaging import render_variant, measure_image
from stormreport.models import (
    CompanyProfile,
    ImageVariant,
    ReportArtifact,
    ReportConfiguration,
    ReportDocument,
    EncodingError,
    InvalidRecipient,
    DeliveryError,
    ImageDecodeError,
)
from tests.conftest import make_image_bytes, make_upload


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def clear_cache_after_test():
    yield
    clear_client_cache()


@pytest.fixture
def mock_ses():
    with patch("stormreport.export.boto3.client") as mock_client:
        ses = MagicMock()
        ses.send_raw_email.return_value = {"MessageId": "msg-001"}
        mock_client.return_value = ses
        yield ses


@pytest.fixture
def full_document(full_project, ready_store):
    ready_store.update_notes("p1", "Shingles lifted <north slope> & ridge")
    config = ReportConfiguration(additional_notes="Replace roof.\n\nInspect gutters.")
    return assemble_report(
        full_project,
        ready_store.list(),
        config,
        generated_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def artifact():
    return ReportArtifact(filename="John_Doe_-_Damage_Report.pdf", content_type="application/pdf", data=b"%PDF-1.4")


# ============================================================================
# ENCODING TESTS
# ============================================================================

class TestEncode:

    def test_full_report_encodes_to_pdf(self, full_document):
        data = encode_report(full_document)
        assert data.startswith(b"%PDF")

    def test_low_resolution_report_encodes(self, full_project, ready_store):
        config = ReportConfiguration(high_resolution=False)
        document = assemble_report(full_project, ready_store.list(), config)
        assert encode_report(document).startswith(b"%PDF")

    def test_cover_with_company_logo(self, full_document):
        company = CompanyProfile(name="Acme", logo_bytes=make_image_bytes(size=(300, 100), fmt="PNG"))
        assert encode_report(full_document, company).startswith(b"%PDF")

    def test_empty_document_still_encodes(self):
        document = ReportDocument(title="Empty", sections=[])
        assert encode_report(document).startswith(b"%PDF")

    def test_many_photos_paginate(self, minimal_project, store):
        for record in store.add([make_upload() for _ in range(13)]):
            store.mark_ready(record.id, width=640, height=480)
        document = assemble_report(minimal_project, store.list(), ReportConfiguration())

        assert encode_report(document).startswith(b"%PDF")

    def test_corrupt_photo_raises_encoding_error(self, minimal_project, store):
        store.add([make_upload(data=b"not an image")])
        store.mark_ready("p1", width=1, height=1)
        document = assemble_report(minimal_project, store.list(), ReportConfiguration())

        with pytest.raises(EncodingError) as exc_info:
            encode_report(document)
        assert "John Doe - Damage Report" in str(exc_info.value)

    def test_long_photo_notes_span_pages(self, minimal_project, ready_store):
        ready_store.update_notes("p1", "Shingle damage observed along ridge. " * 200)
        ready_store.update_notes("p2", "Gutter dented.")
        document = assemble_report(minimal_project, ready_store.list(), ReportConfiguration())

        assert encode_report(document).startswith(b"%PDF")

    def test_long_project_notes_span_pages(self, full_project):
        project = full_project.model_copy(update={"notes": "Long inspection narrative. " * 400})
        document = assemble_report(project, [], ReportConfiguration())

        assert encode_report(document).startswith(b"%PDF")

    def test_long_additional_notes_span_pages(self, minimal_project):
        config = ReportConfiguration(additional_notes="Roof replacement recommended. " * 600)
        document = assemble_report(minimal_project, [], config)

        assert encode_report(document).startswith(b"%PDF")

    @pytest.mark.parametrize("high_resolution", [True, False])
    def test_rotated_photo_encodes(self, minimal_project, store, high_resolution):
        store.add([make_upload(data=make_image_bytes(orientation=6))])
        store.mark_ready("p1", width=480, height=640)
        config = ReportConfiguration(high_resolution=high_resolution)
        document = assemble_report(minimal_project, store.list(), config)

        assert encode_report(document).startswith(b"%PDF")

    def test_corrupt_photo_in_preview_mode_raises_encoding_error(self, minimal_project, store):
        store.add([make_upload(data=b"not an image")])
        store.mark_ready("p1", width=1, height=1)
        config = ReportConfiguration(high_resolution=False)
        document = assemble_report(minimal_project, store.list(), config)

        with pytest.raises(EncodingError) as exc_info:
            encode_report(document)
        assert "Preview generation failed" in str(exc_info.value)


class TestCaption:

    def test_short_notes_kept(self):
        assert _caption("Hail impact on vent") == "Hail impact on vent"

    def test_long_notes_cut_at_word(self):
        caption = _caption("Shingle damage observed along ridge. " * 20)

        assert len(caption) <= CAPTION_MAX_CHARS + len("... (continued below)")
        assert caption.endswith("Shingle damage... (continued below)")


class TestRenderVariant:

    def test_full_passes_through(self, jpeg_bytes):
        assert render_variant(jpeg_bytes, ImageVariant.FULL) is jpeg_bytes

    def test_preview_is_downsampled(self):
        big = make_image_bytes(size=(3000, 1500))
        preview = render_variant(big, ImageVariant.PREVIEW)

        img = Image.open(io.BytesIO(preview))
        assert img.format == "JPEG"
        assert max(img.size) == 1024

    def test_full_applies_exif_rotation(self):
        rotated = make_image_bytes(size=(640, 480), orientation=6)
        full = render_variant(rotated, ImageVariant.FULL)

        assert ImageReader(io.BytesIO(full)).getSize() == (480, 640)
        assert measure_image(rotated) == (480, 640)

    def test_full_without_rotation_passes_through(self):
        upright = make_image_bytes(orientation=1)
        assert render_variant(upright, ImageVariant.FULL) is upright

    def test_preview_applies_exif_rotation(self):
        rotated = make_image_bytes(size=(640, 480), orientation=6)
        preview = render_variant(rotated, ImageVariant.PREVIEW)

        assert Image.open(io.BytesIO(preview)).size == (480, 640)

    def test_full_corrupt_rotation_check_raises(self):
        with pytest.raises(ImageDecodeError):
            render_variant(b"not an image", ImageVariant.FULL)


# ============================================================================
# ARTIFACT TESTS
# ============================================================================

class TestArtifact:

    def test_build_artifact(self, full_document):
        artifact = build_artifact(full_document, b"%PDF-data")

        assert artifact.filename == "John_Smith_-_Damage_Report.pdf"
        assert artifact.content_type == "application/pdf"
        assert artifact.data == b"%PDF-data"

    @pytest.mark.parametrize("title,expected", [
        ("Smith: Roof/Siding?", "Smith_Roof_Siding.pdf"),
        ("   ", "report.pdf"),
    ])
    def test_report_filename(self, title, expected):
        assert report_filename(title) == expected


# ============================================================================
# DELIVERY TESTS
# ============================================================================

class TestDelivery:

    @pytest.mark.parametrize("recipient", ["", "   ", None, "not-an-email", "a@b"])
    def test_invalid_recipient_rejected_before_send(self, recipient, artifact, mock_ses):
        with pytest.raises(InvalidRecipient):
            deliver_email(artifact, recipient)
        mock_ses.send_raw_email.assert_not_called()

    def test_validate_recipient_strips(self):
        assert validate_recipient("  adjuster@example.com ") == "adjuster@example.com"

    def test_send_success(self, artifact, mock_ses):
        message_id = deliver_email(artifact, "adjuster@example.com")

        assert message_id == "msg-001"
        mock_ses.send_raw_email.assert_called_once()
        kwargs = mock_ses.send_raw_email.call_args[1]
        assert kwargs["Destinations"] == ["adjuster@example.com"]

        message = email.message_from_bytes(kwargs["RawMessage"]["Data"])
        assert message["To"] == "adjuster@example.com"
        assert message["Subject"] == "John Doe - Damage Report"
        attachments = [part for part in message.walk() if part.get_filename()]
        assert attachments[0].get_filename() == "John_Doe_-_Damage_Report.pdf"
        assert attachments[0].get_payload(decode=True) == b"%PDF-1.4"

    def test_custom_subject(self, artifact, mock_ses):
        deliver_email(artifact, "adjuster@example.com", subject="Claim WS-12345")

        raw = mock_ses.send_raw_email.call_args[1]["RawMessage"]["Data"]
        assert email.message_from_bytes(raw)["Subject"] == "Claim WS-12345"

    def test_ses_failure_raises_delivery_error(self, artifact, mock_ses):
        mock_ses.send_raw_email.side_effect = Exception("Throttling")

        with pytest.raises(DeliveryError) as exc_info:
            deliver_email(artifact, "adjuster@example.com")
        assert "Throttling" in str(exc_info.value)

    def test_client_cached_between_sends(self, artifact):
        with patch("stormreport.export.boto3.client") as mock_client:
            mock_client.return_value.send_raw_email.return_value = {"MessageId": "x"}
            deliver_email(artifact, "a@example.com")
            deliver_email(artifact, "b@example.com")

        mock_client.assert_called_once()
