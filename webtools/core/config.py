import logging
import os
from dataclasses import dataclass
from typing import List

from dotenv import load_dotenv


load_dotenv()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Config:
    """Defaults for the request helpers, loaded from environment variables.

    Every helper accepts explicit overrides; these values are only used when
    the caller leaves an argument as None.
    """

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "production")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING").upper()

    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "./uploads")
    MAX_FILE_SIZE: int = _int_env("MAX_FILE_SIZE", 10 * 1024 * 1024)  # 10 MB
    MAX_FILES: int = _int_env("MAX_FILES", 10)
    ALLOWED_FILE_TYPES_ENV: str = os.getenv(
        "ALLOWED_FILE_TYPES", "image/jpeg,image/png,image/gif,application/pdf"
    )

    MAX_JSON_SIZE: int = _int_env("MAX_JSON_SIZE", 1024 * 1024)  # 1 MB
    RANDOM_STRING_LENGTH: int = _int_env("RANDOM_STRING_LENGTH", 32)

    @staticmethod
    def allowed_file_types(raw: str | None = None) -> List[str]:
        if raw is None:
            raw = Config.ALLOWED_FILE_TYPES_ENV
        # Deduplicate while preserving order
        seen = set()
        result: List[str] = []
        for mime in raw.split(","):
            mime = mime.strip().lower()
            if mime and mime not in seen:
                seen.add(mime)
                result.append(mime)
        return result

    @classmethod
    def validate(cls) -> None:
        if cls.MAX_FILE_SIZE < 0:
            raise ValueError("MAX_FILE_SIZE must not be negative")
        if cls.MAX_FILES < 0:
            raise ValueError("MAX_FILES must not be negative")
        if cls.MAX_JSON_SIZE < 0:
            raise ValueError("MAX_JSON_SIZE must not be negative")
        if cls.RANDOM_STRING_LENGTH < 0:
            raise ValueError("RANDOM_STRING_LENGTH must not be negative")


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or Config.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )
