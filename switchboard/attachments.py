"""Inline local files into a chat message via ``localfile(path)`` directives."""

import base64
import logging
import re
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

LOCALFILE_PATTERN = re.compile(r"localfile\(([^)]+)\)")

_MIME_TYPES = {
    "txt": "text/plain",
    "json": "application/json",
    "xml": "application/xml",
    "csv": "text/csv",
    "md": "text/markdown",
    "html": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "ts": "application/typescript",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "heic": "image/heic",
    "heif": "image/heif",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


def determine_mime_type(file_path: str) -> str:
    """Guess a MIME type from the file extension."""
    extension = Path(file_path).suffix.lstrip(".").lower()
    return _MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)


def _load_file_part(file_path: str, directive: str) -> dict:
    try:
        data = Path(file_path).read_bytes()
    except OSError as e:
        logger.error("Error reading file %s: %s", file_path, e)
        return {
            "text": (
                f"[File Error: Could not load '{file_path}'. Reason: {e}. "
                f"Original placeholder: '{directive}']"
            ),
        }

    mime_type = determine_mime_type(file_path)
    logger.info("Encoded file %s as %s", file_path, mime_type)
    return {
        "inlineData": {
            "mimeType": mime_type,
            "data": base64.b64encode(data).decode("ascii"),
        },
    }


def _merge_text_parts(parts: List[dict]) -> List[dict]:
    merged: List[dict] = []
    buffer = ""
    for part in parts:
        if "text" in part:
            buffer += part["text"]
            continue
        if buffer:
            merged.append({"text": buffer})
            buffer = ""
        merged.append(part)
    if buffer:
        merged.append({"text": buffer})
    return merged


def process_user_input(user_input: str) -> Union[str, List[dict]]:
    """Turn user text into a Gemini message.

    Text without ``localfile(...)`` directives is returned unchanged. Otherwise
    each directive is replaced by an inline-data part carrying the file
    contents (or a text part describing why it could not be read), and
    adjacent text is merged.

    ``"Summarize localfile(notes.txt) please"`` becomes::

        [{"text": "Summarize "}, {"inlineData": {...}}, {"text": " please"}]
    """
    parts: List[dict] = []
    last_index = 0
    for match in LOCALFILE_PATTERN.finditer(user_input):
        if match.start() > last_index:
            parts.append({"text": user_input[last_index:match.start()]})
        file_path = match.group(1).strip()
        logger.info("Found localfile() directive: %s", file_path)
        parts.append(_load_file_part(file_path, match.group(0)))
        last_index = match.end()

    if not parts:
        return user_input

    if last_index < len(user_input):
        parts.append({"text": user_input[last_index:]})

    processed = [p for p in _merge_text_parts(parts) if p.get("text", None) != ""]
    if not processed:
        logger.warning("Processed parts were empty; sending original input as text.")
        return [{"text": user_input}]
    return processed
