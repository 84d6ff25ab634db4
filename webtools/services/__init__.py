from .json_body import decode_json, error_json, read_json, validate_json, write_json
from .random_strings import RandomStringOptions, random_string, random_token
from .uploads import (
    UploadedFile,
    create_dir_if_not_exist,
    detect_content_type,
    upload_files,
    upload_files_from_request,
    upload_one_file,
)

__all__ = [
    "RandomStringOptions",
    "UploadedFile",
    "create_dir_if_not_exist",
    "decode_json",
    "detect_content_type",
    "error_json",
    "random_string",
    "random_token",
    "read_json",
    "upload_files",
    "upload_files_from_request",
    "upload_one_file",
    "validate_json",
    "write_json",
]
