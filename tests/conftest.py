"""Shared fixtures: real image bytes built with Pillow, uploads, and projects."""

import io
import itertools
from datetime import date

import pytest
from PIL import Image

from stormreport.models import PhotoUpload, ProjectRecord
from stormreport.photo_store import PhotoStore


def make_image_bytes(size=(640, 480), color="red", fmt="JPEG", orientation=None) -> bytes:
    img = Image.new("RGB", size, color=color)
    buf = io.BytesIO()
    if orientation is None:
        img.save(buf, format=fmt)
    else:
        exif = Image.Exif()
        exif[0x0112] = orientation
        img.save(buf, format=fmt, exif=exif)
    return buf.getvalue()


def make_upload(name="roof.jpg", media_type="image/jpeg", data=None) -> PhotoUpload:
    return PhotoUpload(
        filename=name,
        media_type=media_type,
        data=data if data is not None else make_image_bytes(),
    )


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes()


@pytest.fixture
def upload_factory():
    return make_upload


@pytest.fixture
def sequential_ids():
    """Deterministic photo ids: p1, p2, ..."""
    counter = itertools.count(1)
    return lambda: f"p{next(counter)}"


@pytest.fixture
def store(sequential_ids):
    return PhotoStore(id_factory=sequential_ids)


@pytest.fixture
def minimal_project():
    return ProjectRecord(client_name="John Doe", incident_date=date(2024, 3, 1))


@pytest.fixture
def full_project():
    return ProjectRecord(
        client_name="John Smith",
        client_phone="555-0100",
        client_email="john@example.com",
        incident_date=date(2024, 5, 12),
        address="123 Storm Lane",
        city="Weathertown",
        state="TX",
        zip_code="12345",
        damage_type="Wind Damage",
        severity_level="Moderate",
        insurance_company="Weather Shield Insurance",
        claim_number="WS-12345",
        adjuster_name="Pat Lee",
        adjuster_phone="555-0199",
    )


@pytest.fixture
def ready_store(store):
    """Store holding three fully ingested photos."""
    records = store.add([make_upload(name=f"photo{i}.jpg") for i in range(3)])
    for record in records:
        store.mark_ready(record.id, width=640, height=480)
    return store
