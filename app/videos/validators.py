"""
Video upload validators.

Filename sanitizing, extension handling, format recognition and the
"needs conversion" decision shared by the chunked and direct upload paths.

Format lists only drive the needs-conversion flag for chunked uploads;
unrecognized but plausible video files are accepted and flagged.
"""

from __future__ import annotations

import re

from core.exceptions import ValidationError

# =============================================================================
# Configuration
# =============================================================================

# Directly playable in browsers without transcoding
WEB_COMPATIBLE_TYPES: frozenset[str] = frozenset(
    {
        "video/mp4",
        "video/webm",
        "video/ogg",
    }
)

ALLOWED_VIDEO_TYPES: frozenset[str] = frozenset(
    {
        "video/mp4",
        "video/webm",
        "video/ogg",
        "video/avi",
        "video/mov",
        "video/quicktime",
        "video/wmv",
        "video/x-ms-wmv",
        "video/mkv",
        "video/x-matroska",
        "video/flv",
        "video/x-flv",
        "video/3gpp",
        "video/mpeg",
        "video/m4v",
    }
)

ALLOWED_VIDEO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp4",
        ".webm",
        ".ogg",
        ".avi",
        ".mov",
        ".wmv",
        ".mkv",
        ".flv",
        ".3gp",
        ".m4v",
    }
)

MAX_FILENAME_LENGTH = 255
MAX_TITLE_LENGTH = 100
MAX_TAGS = 10
MAX_TAG_LENGTH = 30

# Path separators, drive markers and shell/HTML specials, plus control characters
_ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_DOT_RUNS = re.compile(r"\.\.+")
_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


# =============================================================================
# Filenames
# =============================================================================


def sanitize_filename(filename: str) -> str:
    """
    Strip characters that could cause path traversal or injection.

    Removes path separators, drive/volume markers and other illegal
    characters, collapses runs of dots, drops leading dots and surrounding
    whitespace, and caps the result at 255 characters.

    Example:
        sanitize_filename("../../etc/passwd")  # "etcpasswd"
        sanitize_filename(" ..my<clip>.mp4 ")  # "myclip.mp4"
    """
    cleaned = _ILLEGAL_FILENAME_CHARS.sub("", filename)
    cleaned = _DOT_RUNS.sub(".", cleaned)
    cleaned = cleaned.strip().lstrip(".").strip()
    return cleaned[:MAX_FILENAME_LENGTH]


def get_file_extension(filename: str) -> str:
    """
    Return the lowercased extension including the dot, or "".

    Anything that does not look like a real extension (spaces, very long
    suffixes) is dropped so it never reaches a storage name.
    """
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    extension = filename[dot:]
    if not _EXTENSION_RE.match(extension):
        return ""
    return extension.lower()


# =============================================================================
# Formats
# =============================================================================


def normalize_content_type(content_type: str | None) -> str:
    """Lowercase a MIME type and drop parameters ("video/mp4; codecs=..." -> "video/mp4")."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def is_video_file(content_type: str | None, filename: str) -> bool:
    """True when either the MIME type or the extension is a recognised video format."""
    return (
        normalize_content_type(content_type) in ALLOWED_VIDEO_TYPES
        or get_file_extension(filename) in ALLOWED_VIDEO_EXTENSIONS
    )


def needs_conversion(content_type: str | None) -> bool:
    """True unless the declared type is directly playable in browsers."""
    return normalize_content_type(content_type) not in WEB_COMPATIBLE_TYPES


# =============================================================================
# Metadata
# =============================================================================


def validate_title(title: str | None) -> str:
    """
    Return the trimmed title.

    Raises:
        ValidationError: Title missing or longer than MAX_TITLE_LENGTH
    """
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError(
            "Video title is required",
            error_code="TITLE_REQUIRED",
            details={"field": "title"},
        )
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"Title too long. Max {MAX_TITLE_LENGTH} characters.",
            error_code="TITLE_TOO_LONG",
            details={"field": "title", "max_length": MAX_TITLE_LENGTH},
        )
    return cleaned


def clean_tags(tags: str | None) -> str:
    """
    Normalize a comma-separated tag string.

    Tags are trimmed, stripped of angle brackets and de-duplicated in
    order. Returns the cleaned tags joined with ", ".

    Raises:
        ValidationError: More than MAX_TAGS tags or a tag over MAX_TAG_LENGTH
    """
    if not tags or not tags.strip():
        return ""

    cleaned: list[str] = []
    for raw in tags.split(","):
        tag = raw.strip().replace("<", "").replace(">", "")
        if tag and tag not in cleaned:
            cleaned.append(tag)

    if len(cleaned) > MAX_TAGS:
        raise ValidationError(
            f"Too many tags. Max {MAX_TAGS} allowed.",
            error_code="TOO_MANY_TAGS",
            details={"field": "tags", "max_tags": MAX_TAGS},
        )
    too_long = [tag for tag in cleaned if len(tag) > MAX_TAG_LENGTH]
    if too_long:
        raise ValidationError(
            f"Tags too long. Max {MAX_TAG_LENGTH} characters per tag.",
            error_code="TAG_TOO_LONG",
            details={"field": "tags", "tags": too_long},
        )
    return ", ".join(cleaned)
