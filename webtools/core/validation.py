import logging
import os
import re
from typing import Iterable, Optional

from fastapi import HTTPException


logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r'^[a-zA-Z0-9_-]+$')


def sanitize_filename(filename: Optional[str]) -> str:
    """Reduce a client supplied file name to a safe base name.

    Directory components are dropped (both separators, since browsers on
    Windows send backslashes). Names that are still unusable afterwards are
    rejected with a 400.
    """
    if not filename or not filename.strip():
        raise HTTPException(status_code=400, detail="No filename provided")

    name = filename.replace('\\', '/').rsplit('/', 1)[-1].strip()
    if not name or name in {'.', '..'} or '..' in name:
        logger.warning(f"Rejected filename with path traversal characters: {filename}")
        raise HTTPException(status_code=400, detail="Invalid filename")
    if '\x00' in name:
        raise HTTPException(status_code=400, detail="Invalid filename")
    return name


def file_extension(filename: str) -> str:
    return os.path.splitext(filename)[1].lower()


def check_size(size: Optional[int], max_size: int) -> None:
    if max_size > 0 and size is not None and size > max_size:
        raise HTTPException(status_code=413, detail="The uploaded file is too big")


def check_content_type(content_type: str, allowed_types: Optional[Iterable[str]]) -> None:
    allowed = {t.lower() for t in allowed_types or ()}
    if not allowed:
        return
    # libmagic may append parameters such as "; charset=binary"
    mime = content_type.split(';', 1)[0].strip().lower()
    if mime not in allowed:
        logger.warning(f"Rejected upload of type {mime}. Allowed: {sorted(allowed)}")
        raise HTTPException(status_code=415, detail="The uploaded file type is not permitted")


def validate_identifier(value: Optional[str], name: str = "id") -> None:
    if value and not _IDENTIFIER_RE.match(value):
        raise HTTPException(status_code=400, detail=f"Invalid {name} format")
