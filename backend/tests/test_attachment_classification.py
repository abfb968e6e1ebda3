import pytest

from metro_ops.schemas.incident import AttachmentType
from metro_ops.services.attachments import classify_attachment


@pytest.mark.parametrize(
    "content_type, field_name, expected",
    [
        ("audio/wav", "audio", AttachmentType.AUDIO),
        ("audio/mpeg", "files", AttachmentType.AUDIO),
        ("video/mp4", "files", AttachmentType.VIDEO),
        ("image/png", "handwriting", AttachmentType.HANDWRITING),
        ("image/jpeg", "photos", AttachmentType.PHOTO),
        ("application/pdf", "files", AttachmentType.PHOTO),
        ("", "files", AttachmentType.PHOTO),
        (None, None, AttachmentType.PHOTO),
    ],
)
def test_classification(content_type, field_name, expected):
    assert classify_attachment(content_type, field_name) == expected


def test_media_type_beats_handwriting_field():
    assert classify_attachment("audio/ogg", "handwriting") == AttachmentType.AUDIO
    assert classify_attachment("video/webm", "handwriting") == AttachmentType.VIDEO


def test_media_type_prefix_is_case_insensitive():
    assert classify_attachment("Audio/WAV", "files") == AttachmentType.AUDIO


def test_handwriting_field_name_is_exact():
    assert classify_attachment("image/png", "Handwriting") == AttachmentType.PHOTO
