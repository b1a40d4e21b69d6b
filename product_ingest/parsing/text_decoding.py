"""
Byte-to-text decoding for the text-based readers.
"""

import codecs

from product_ingest.core.errors import ParseError, ParseErrorKind

_UTF16_BOMS = (codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)


def decode_text(raw: bytes, source_name: str, fallback_encoding: str = "cp1252") -> str:
    """
    Decode uploaded bytes into text.

    Order: UTF-8 BOM, UTF-16 BOM, strict UTF-8, then the fallback
    encoding. NUL bytes outside UTF-16 mean the stream is binary.

    Args:
        raw: File content
        source_name: File name (for error messages)
        fallback_encoding: Legacy encoding tried when UTF-8 fails

    Returns:
        Decoded text with any BOM removed

    Raises:
        ParseError: DECODE_FAILURE if the bytes are not text
    """
    try:
        if raw.startswith(codecs.BOM_UTF8):
            return raw[len(codecs.BOM_UTF8):].decode("utf-8")
        if raw.startswith(_UTF16_BOMS):
            return raw.decode("utf-16")
    except UnicodeDecodeError as e:
        raise ParseError(ParseErrorKind.DECODE_FAILURE, source_name, f"Invalid text encoding: {e}") from e

    if b"\x00" in raw:
        raise ParseError(ParseErrorKind.DECODE_FAILURE, source_name, "File contains binary data, not text")

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as utf8_error:
        try:
            return raw.decode(fallback_encoding)
        except (UnicodeDecodeError, LookupError) as e:
            raise ParseError(
                ParseErrorKind.DECODE_FAILURE,
                source_name,
                f"Not valid UTF-8 ({utf8_error.reason}) or {fallback_encoding}",
            ) from e


def non_blank_lines(text: str) -> list[str]:
    """Split on newlines and drop empty or whitespace-only lines."""
    return [line for line in text.split("\n") if line.strip()]
