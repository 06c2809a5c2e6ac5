"""
Mapping between logical files and storage keys.

A logical file (filename, hash, variant) is stored under

    [directory/]<hash10>/<basename>[__<variant>]<extension>

where hash10 is the first ten characters of the original content hash.
Variants share the directory, hash segment and basename of their original
and differ only by the '__<variant>' suffix before the extension.
"""

import posixpath
import re
from typing import Optional

VARIANT_DELIMITER = "__"
HASH_PREFIX_LENGTH = 10

_DELIMITER_RUN = re.compile(r"_{2,}")
_VARIANT_PATTERN = re.compile(r"^(?P<before>(?:(?<!__).)+)__(?P<variant>[^.]+)(?P<after>.*)$", re.DOTALL)
_HASH_SEGMENT = re.compile(r"(?P<lead>^|/)[a-zA-Z0-9]{10}/(?P<name>[^/]+)$")


def clean_filename(filename: str) -> str:
    """Collapse runs of underscores so a filename never contains the variant delimiter."""
    return _DELIMITER_RUN.sub("_", filename)


def split_extension(name: str):
    """Split a basename at its first dot, e.g. 'a.tar.gz' -> ('a', '.tar.gz')."""
    pos = name.find(".")
    if pos == -1:
        return name, ""
    return name[:pos], name[pos:]


def key_dirname(key: str) -> str:
    """Directory part of a key, '' for keys at the root."""
    dirname = posixpath.dirname(key)
    return "" if dirname == "." else dirname


def derive_key(filename: str, hash: str, variant: Optional[str] = None) -> str:
    """
    Map a file tuple to the key it is stored under.

    >>> derive_key("folder/My File.jpg", "abcdef1234567890", "resized")
    'folder/abcdef1234/My File__resized.jpg'
    """
    filename = clean_filename(filename)
    name, extension = split_extension(posixpath.basename(filename))

    # Inject hash just prior to the filename
    key = f"{hash[:HASH_PREFIX_LENGTH]}/{name}"

    dirname = key_dirname(filename)
    if dirname:
        key = f"{dirname}/{key}"

    if variant:
        key += VARIANT_DELIMITER + variant

    return key + extension


def strip_variant(key: str) -> str:
    """
    Remove the '__<variant>' segment from a key.

    Keys without a variant are returned unchanged. Stripping is repeated
    until no delimiter remains so that the result is a fixed point.
    """
    while True:
        match = _VARIANT_PATTERN.match(key)
        if not match:
            return key
        key = match.group("before") + match.group("after")


def original_filename(key: str) -> str:
    """
    Map a key back to the filename it was derived from.

    Drops the variant and the hash segment. Legacy keys stored without a
    hash segment pass through unchanged.
    """
    return _HASH_SEGMENT.sub(r"\g<lead>\g<name>", strip_variant(key))
