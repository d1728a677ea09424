"""
S9B Program Image Files
=======================

Reading and writing assembled images so that the assembler, the runner
and the disassembler can be used as separate command-line steps.

Formats
-------
hex
    Text, one word per line as hexadecimal digits (three for 9-bit
    words). Blank lines and ``#`` comments are ignored on read.

    ```
    # s9b image, 12 words
    1f6
    005
    ...
    ```

bin
    Binary, one little-endian unsigned 16-bit value per word.

The format is chosen from the file suffix when not given explicitly.
"""

from pathlib import Path
from typing import Optional
import struct

from s9b_sdk.errors import ImageError


FORMAT_HEX = "hex"
FORMAT_BIN = "bin"
FORMATS = (FORMAT_HEX, FORMAT_BIN)

# Binary word encoding: little-endian unsigned 16-bit
WORD_STRUCT = struct.Struct("<H")


def infer_format(path: str | Path) -> str:
    """
    Pick an image format from a file suffix.

    Raises:
        ImageError: If the suffix is not .hex or .bin
    """
    suffix = Path(path).suffix.lower().lstrip(".")
    if suffix in FORMATS:
        return suffix
    raise ImageError(f"cannot infer image format from '{path}', use .hex or .bin")


def encode_hex(words: list[int], word_bits: int = 9) -> str:
    """Render words as hex image text."""
    digits = (word_bits + 3) // 4
    lines = [f"# s9b image, {len(words)} words"]
    lines.extend(f"{word:0{digits}x}" for word in words)
    return "\n".join(lines) + "\n"


def decode_hex(text: str) -> list[int]:
    """
    Parse hex image text.

    Raises:
        ImageError: If a line is not a hexadecimal number
    """
    words = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        content = line.split("#", 1)[0].strip()
        if not content:
            continue
        try:
            words.append(int(content, 16))
        except ValueError:
            raise ImageError(f"line {line_number}: invalid hex word '{content}'") from None
    return words


def encode_bin(words: list[int]) -> bytes:
    """
    Pack words as little-endian 16-bit values.

    Raises:
        ImageError: If a word does not fit in 16 bits
    """
    try:
        return b"".join(WORD_STRUCT.pack(word) for word in words)
    except struct.error as e:
        raise ImageError(f"word does not fit the binary image format: {e}") from e


def decode_bin(data: bytes) -> list[int]:
    """
    Unpack little-endian 16-bit values.

    Raises:
        ImageError: If the data length is odd
    """
    if len(data) % WORD_STRUCT.size:
        raise ImageError(f"binary image has odd length {len(data)}")
    return [word for (word,) in WORD_STRUCT.iter_unpack(data)]


def write_image(path: str | Path, words: list[int], fmt: Optional[str] = None, word_bits: int = 9) -> None:
    """
    Write an image file.

    Args:
        path: Output file path
        words: Image words
        fmt: "hex" or "bin" (inferred from the suffix if omitted)
        word_bits: Word width, sets the hex digit count
    """
    path = Path(path)
    fmt = fmt or infer_format(path)
    if fmt == FORMAT_HEX:
        path.write_text(encode_hex(words, word_bits))
    elif fmt == FORMAT_BIN:
        path.write_bytes(encode_bin(words))
    else:
        raise ImageError(f"unknown image format '{fmt}'")


def read_image(path: str | Path, fmt: Optional[str] = None) -> list[int]:
    """
    Read an image file.

    Args:
        path: Image file path
        fmt: "hex" or "bin" (inferred from the suffix if omitted)

    Returns:
        The image words

    Raises:
        ImageError: If the file is missing or malformed
    """
    path = Path(path)
    fmt = fmt or infer_format(path)
    try:
        if fmt == FORMAT_HEX:
            return decode_hex(path.read_text())
        if fmt == FORMAT_BIN:
            return decode_bin(path.read_bytes())
    except OSError as e:
        raise ImageError(f"cannot read image '{path}': {e}") from e
    raise ImageError(f"unknown image format '{fmt}'")
