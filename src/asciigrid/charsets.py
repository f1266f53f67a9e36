import string
from pathlib import Path

from asciigrid.errors import FontLoadError, InvalidConfigurationError

UPPERCASE = string.ascii_uppercase

LOWERCASE = string.ascii_lowercase

LETTERS = " " + UPPERCASE + LOWERCASE

SYMBOLS = " " + string.punctuation

# Ramp from empty to dense, for flat-shaded output
MINIMAL = " .:-=+*#%@"

# Every printable ASCII character
ALPHABET = "".join(chr(i) for i in range(32, 127))

BUILTIN_ALPHABETS = {
    "alphabet": ALPHABET,
    "letters": LETTERS,
    "lowercase": " " + LOWERCASE,
    "minimal": MINIMAL,
    "symbols": SYMBOLS,
    "uppercase": " " + UPPERCASE,
}


def _is_printable(char: str) -> bool:
    code = ord(char)
    return code >= 32 and code != 127


def normalize_alphabet(characters: str) -> str:
    """Drop control characters and repeats, keeping first-seen order."""
    return "".join(dict.fromkeys(c for c in characters if _is_printable(c)))


def load_alphabet(name_or_path: str | Path) -> str:
    """Return a built-in alphabet by name, or read one from a file.

    Files are read as raw bytes and each byte is taken as one character
    (Latin-1), so multi-byte encodings are not decoded.
    """
    if isinstance(name_or_path, str) and name_or_path in BUILTIN_ALPHABETS:
        return BUILTIN_ALPHABETS[name_or_path]

    path = Path(name_or_path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FontLoadError(f"Cannot read alphabet file {path}: {exc.strerror or exc}") from exc

    alphabet = normalize_alphabet(raw.decode("latin-1"))
    if not alphabet:
        raise InvalidConfigurationError(f"Alphabet file {path} contains no printable characters")
    return alphabet
