import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

import magic
from fastapi import HTTPException, Request
from starlette.datastructures import UploadFile

from ..core.config import Config
from ..core.validation import check_content_type, check_size, file_extension, sanitize_filename
from .random_strings import random_token


logger = logging.getLogger(__name__)

SNIFF_LENGTH = 512
CHUNK_SIZE = 64 * 1024
RENAMED_FILE_NAME_LENGTH = 25


@dataclass
class UploadedFile:
    new_file_name: str
    original_file_name: str
    file_size: int
    content_type: str


def create_dir_if_not_exist(path: Union[str, os.PathLike]) -> Path:
    directory = Path(path)
    if not directory.exists():
        directory.mkdir(mode=0o755, parents=True, exist_ok=True)
        logger.info(f"Created upload directory {directory}")
    return directory


def detect_content_type(head: bytes) -> str:
    """Sniff the MIME type from the leading bytes of a file."""
    return magic.from_buffer(head[:SNIFF_LENGTH], mime=True)


def _resolve_limits(upload_dir, max_file_size, allowed_types):
    if upload_dir is None:
        upload_dir = Config.UPLOAD_DIR
    if max_file_size is None:
        max_file_size = Config.MAX_FILE_SIZE
    if allowed_types is None:
        allowed_types = Config.allowed_file_types()
    return upload_dir, max_file_size, list(allowed_types)


async def upload_one_file(
    file: UploadFile,
    upload_dir: Optional[Union[str, os.PathLike]] = None,
    rename: bool = True,
    max_file_size: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> UploadedFile:
    """Validate one uploaded file and stream it into `upload_dir`.

    The content type is sniffed from the file contents, never taken from the
    client's Content-Type header. Existing files are never overwritten, and a
    partially written file is removed when the size ceiling is crossed.
    """
    upload_dir, max_file_size, allowed_types = _resolve_limits(upload_dir, max_file_size, allowed_types)

    original_name = sanitize_filename(file.filename)
    check_size(getattr(file, 'size', None), max_file_size)

    head = await file.read(SNIFF_LENGTH)
    content_type = detect_content_type(head)
    check_content_type(content_type, allowed_types)
    await file.seek(0)

    if rename:
        new_name = f"{random_token(RENAMED_FILE_NAME_LENGTH)}{file_extension(original_name)}"
    else:
        new_name = original_name

    target = create_dir_if_not_exist(upload_dir) / new_name
    written = 0
    try:
        out = open(target, 'xb')
    except FileExistsError:
        logger.warning(f"Rejected upload {original_name}: {target} already exists")
        raise HTTPException(status_code=409, detail="A file with that name already exists")

    # Only the file created above may be removed on failure
    try:
        with out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if max_file_size > 0 and written > max_file_size:
                    raise HTTPException(status_code=413, detail="The uploaded file is too big")
                out.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise

    logger.info(f"Stored upload {original_name} as {target} ({written} bytes, {content_type})")
    return UploadedFile(
        new_file_name=new_name,
        original_file_name=original_name,
        file_size=written,
        content_type=content_type,
    )


async def upload_files(
    files: Iterable[UploadFile],
    upload_dir: Optional[Union[str, os.PathLike]] = None,
    rename: bool = True,
    max_file_size: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> List[UploadedFile]:
    """Store every file or none of them."""
    upload_dir, max_file_size, allowed_types = _resolve_limits(upload_dir, max_file_size, allowed_types)

    stored: List[UploadedFile] = []
    try:
        for file in files:
            stored.append(await upload_one_file(
                file,
                upload_dir=upload_dir,
                rename=rename,
                max_file_size=max_file_size,
                allowed_types=allowed_types,
            ))
    except Exception as e:
        logger.warning(f"Upload failed after {len(stored)} stored file(s), rolling back: {e}")
        for uploaded in stored:
            (Path(upload_dir) / uploaded.new_file_name).unlink(missing_ok=True)
        raise
    return stored


async def upload_files_from_request(
    request: Request,
    field: str = "file",
    max_files: Optional[int] = None,
    upload_dir: Optional[Union[str, os.PathLike]] = None,
    rename: bool = True,
    max_file_size: Optional[int] = None,
    allowed_types: Optional[Iterable[str]] = None,
) -> List[UploadedFile]:
    if max_files is None:
        max_files = Config.MAX_FILES

    form = await request.form()
    try:
        files = [item for item in form.getlist(field) if isinstance(item, UploadFile)]
        if not files:
            raise HTTPException(status_code=400, detail=f"No files uploaded in field '{field}'")
        if max_files > 0 and len(files) > max_files:
            raise HTTPException(status_code=400, detail=f"Too many files. Maximum is {max_files}")

        return await upload_files(
            files,
            upload_dir=upload_dir,
            rename=rename,
            max_file_size=max_file_size,
            allowed_types=allowed_types,
        )
    finally:
        await form.close()
