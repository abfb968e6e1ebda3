from typing import Optional
from metro_ops.schemas.incident import AttachmentType

HANDWRITING_FIELD = "handwriting"


def classify_attachment(content_type: Optional[str], field_name: Optional[str]) -> AttachmentType:
    """Pick an attachment type from the upload's media type and form field.

    The media type wins: an ``audio/*`` file posted under the ``handwriting``
    field is still AUDIO. Media types are matched case-insensitively, so
    ``Audio/WAV`` is AUDIO too. Anything unrecognised is filed as a PHOTO.
    """
    content_type = (content_type or "").lower()
    if content_type.startswith("audio/"):
        return AttachmentType.AUDIO
    if content_type.startswith("video/"):
        return AttachmentType.VIDEO
    if field_name == HANDWRITING_FIELD:
        return AttachmentType.HANDWRITING
    return AttachmentType.PHOTO
