"""Rename candidates for keys that are already taken."""

import posixpath
import re
from typing import Callable, Iterable, Iterator

from assetstore.assets.keys import key_dirname, split_extension

# Builds the ordered candidate sequence for a taken key
NameGeneratorFactory = Callable[[str], Iterable[str]]


class VersionedNameGenerator:
    """
    Yields 'name-v2.ext', 'name-v3.ext', ... for a key 'name.ext'.

    An existing version suffix is dropped before numbering, so the
    candidates for 'photo-v4.jpg' are 'photo-v2.jpg', 'photo-v3.jpg',
    'photo-v5.jpg', ... The key itself is never yielded. At most
    max_tries candidates are produced.
    """

    DEFAULT_MAX_TRIES = 100
    FIRST_VERSION = 2

    def __init__(self, key: str, max_tries: int = DEFAULT_MAX_TRIES, version_prefix: str = "-v"):
        if max_tries < 1:
            raise ValueError("max_tries must be at least 1")
        self.key = key
        self.max_tries = max_tries
        self.version_prefix = version_prefix

    def __iter__(self) -> Iterator[str]:
        dirname = key_dirname(self.key)
        name, extension = split_extension(posixpath.basename(self.key))
        suffix = re.compile(re.escape(self.version_prefix) + r"[0-9]+$")
        name = suffix.sub("", name)

        produced = 0
        version = self.FIRST_VERSION
        while produced < self.max_tries:
            candidate = f"{name}{self.version_prefix}{version}{extension}"
            if dirname:
                candidate = f"{dirname}/{candidate}"
            version += 1
            if candidate == self.key:
                continue
            produced += 1
            yield candidate


def versioned_name_generator(max_tries: int) -> NameGeneratorFactory:
    """Factory producing VersionedNameGenerator instances with a fixed attempt limit."""

    def factory(key: str) -> Iterable[str]:
        return VersionedNameGenerator(key, max_tries=max_tries)

    return factory
