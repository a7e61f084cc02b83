"""File type classification for the dashboard's type filters."""

import mimetypes
import os
from typing import Optional

DOCUMENT_EXTENSIONS = ('.pdf', '.doc', '.docx', '.txt', '.rtf', '.odt')
SPREADSHEET_EXTENSIONS = ('.xls', '.xlsx', '.csv', '.ods')
PRESENTATION_EXTENSIONS = ('.ppt', '.pptx', '.odp')
IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp')
AUDIO_EXTENSIONS = ('.mp3', '.wav', '.ogg', '.flac', '.m4a')
VIDEO_EXTENSIONS = ('.mp4', '.webm', '.avi', '.mov', '.wmv')
ARCHIVE_EXTENSIONS = ('.zip', '.rar', '.7z', '.tar', '.gz')

_EXTENSION_GROUPS = (
    ('document', DOCUMENT_EXTENSIONS),
    ('spreadsheet', SPREADSHEET_EXTENSIONS),
    ('presentation', PRESENTATION_EXTENSIONS),
    ('image', IMAGE_EXTENSIONS),
    ('audio', AUDIO_EXTENSIONS),
    ('video', VIDEO_EXTENSIONS),
    ('archive', ARCHIVE_EXTENSIONS),
)


def guess_mime_type(file_name: str) -> str:
    """
    Guess a MIME type from the file name.

    Args:
        file_name: Original file name

    Returns:
        MIME type string, application/octet-stream when unknown
    """
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or 'application/octet-stream'


def classify_file_type(file_name: str, mime_type: Optional[str] = None) -> str:
    """
    Classify a file into a coarse type bucket.

    The MIME type wins for image/audio/video; everything else is decided by
    extension.

    Args:
        file_name: Original file name
        mime_type: Optional MIME type reported by the uploader

    Returns:
        One of document, spreadsheet, presentation, image, audio, video,
        archive or other
    """
    mime = (mime_type or '').lower()
    for prefix in ('image', 'audio', 'video'):
        if mime.startswith(f'{prefix}/'):
            return prefix

    ext = os.path.splitext(file_name)[1].lower()
    for file_type, extensions in _EXTENSION_GROUPS:
        if ext in extensions:
            return file_type

    return 'other'
