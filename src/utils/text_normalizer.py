"""Text normalization utilities for embedding input and stored file names.

Two concerns live here:

1. **Embedding input cleaning** -- whitespace runs and repeated punctuation
   carry no meaning for an embedding model but do change the cache key and
   the token count, so every text (ingested chunk or user query) passes
   through :func:`clean_embedding_text` before it is embedded.

2. **File name sanitisation** -- uploaded file names become part of the
   object-storage key, so anything outside a conservative character set is
   replaced.
"""

import re

_WHITESPACE_RUN = re.compile(r"\s+")
_ELLIPSIS_RUN = re.compile(r"\.{3,}")
_EXCLAMATION_RUN = re.compile(r"!{2,}")
_QUESTION_RUN = re.compile(r"\?{2,}")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.\-_]")


def clean_embedding_text(text: str) -> str:
    """Normalise *text* before it is sent to the embedding model.

    Collapses whitespace to single spaces, caps runs of three or more dots
    to an ellipsis, collapses repeated ``!`` and ``?`` and trims the ends.

    Args:
        text: Raw chunk or query text.

    Returns:
        The cleaned text (possibly empty).
    """
    cleaned = _WHITESPACE_RUN.sub(" ", text)
    cleaned = _ELLIPSIS_RUN.sub("...", cleaned)
    cleaned = _EXCLAMATION_RUN.sub("!", cleaned)
    cleaned = _QUESTION_RUN.sub("?", cleaned)
    return cleaned.strip()


def sanitize_filename(filename: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9._-]`` with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)
