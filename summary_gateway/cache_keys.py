# summary_gateway/cache_keys.py - content-addressable keys for cached summaries
"""
Key layout:

    <prefix>/<model-tag>/<source-id>/<sha256-hex>.json

The same (normalized text, source id, prefix, model tag) always gives the
same key. Nothing here reads the clock or any random source.
"""
import hashlib
import re

from .schemas import UNKNOWN_SOURCE

_UNSAFE = re.compile(r"[^A-Za-z0-9/_-]")
_SLASHES = re.compile(r"/+")


def content_hash(normalized_text: str) -> str:
    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


def sanitize_source_id(source_id: str) -> str:
    cleaned = _UNSAFE.sub("_", source_id)
    cleaned = _SLASHES.sub("/", cleaned).strip("/")
    return cleaned or UNKNOWN_SOURCE


def derive_cache_key(normalized_text: str, source_id: str, prefix: str, model_tag: str) -> str:
    return "/".join([
        prefix,
        model_tag,
        sanitize_source_id(source_id),
        content_hash(normalized_text) + ".json",
    ])
