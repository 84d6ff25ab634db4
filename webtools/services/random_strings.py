import secrets
import string
from dataclasses import dataclass
from typing import Optional

from ..core.config import Config


LETTERS = string.ascii_letters
NUMBERS = string.digits
SYMBOLS = "_+"


@dataclass(frozen=True)
class RandomStringOptions:
    length: int = Config.RANDOM_STRING_LENGTH
    include_letters: bool = True
    include_numbers: bool = True
    include_symbols: bool = False


def build_alphabet(options: RandomStringOptions) -> str:
    alphabet = ""
    if options.include_letters:
        alphabet += LETTERS
    if options.include_numbers:
        alphabet += NUMBERS
    if options.include_symbols:
        alphabet += SYMBOLS
    if not alphabet:
        raise ValueError("at least one character class must be included")
    return alphabet


def random_string(length: Optional[int] = None, options: Optional[RandomStringOptions] = None) -> str:
    """Return `length` characters drawn uniformly from the selected classes.

    Characters come from the OS CSPRNG via `secrets`, so the result is safe
    to use for tokens and file names. An explicit `length` wins over
    `options.length`.
    """
    options = options or RandomStringOptions()
    if length is None:
        length = options.length
    if length < 0:
        raise ValueError("length must not be negative")

    alphabet = build_alphabet(options)
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def random_token(length: int = 32) -> str:
    return random_string(length, RandomStringOptions(include_symbols=False))
