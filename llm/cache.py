"""File-backed response cache for the LLM router.

Each entry lives in ``<cache_dir>/<md5>.json`` where the digest is computed
over a canonical JSON rendering of the request fields.  Entries never expire;
``clear()`` is the only way to drop them.  Every storage problem is reported
as a miss (reads) or a logged no-op (writes) so the cache can never abort a
request.
"""
from __future__ import annotations

import contextlib
import dataclasses
import hashlib
import json
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

from pydantic import TypeAdapter

from core import metrics
from core.logging import logger

from .types import LLMRequest, LLMResponse

__all__ = [
    "CacheLookup",
    "CacheMiss",
    "ResponseCache",
]

DEFAULT_CACHE_DIR = Path(".cache/llm")

_RESPONSE_ADAPTER = TypeAdapter(LLMResponse)
_NOT_PERSISTED = {"fallback_errors"}


class CacheMiss(str, Enum):
    ABSENT = "absent"
    CORRUPT = "corrupt"
    DISABLED = "disabled"


class CacheLookup(NamedTuple):
    """Outcome of a lookup: either a response or the reason for the miss."""
    response: Optional[LLMResponse]
    miss: Optional[CacheMiss] = None

    @property
    def hit(self) -> bool:
        return self.response is not None


def _canonical(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _canonical(value[k]) for k in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


class ResponseCache:
    """One JSON file per request fingerprint, shared by every router in the process."""

    def __init__(self, cache_dir: Optional[Path] = None, enabled: bool = True) -> None:
        self._dir = Path(cache_dir) if cache_dir is not None else DEFAULT_CACHE_DIR
        self._enabled = enabled
        if self._enabled:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.warning(f"[ResponseCache] Cannot create cache dir {self._dir}: {exc}")

    @classmethod
    def from_settings(cls, settings) -> "ResponseCache":
        return cls(cache_dir=settings.LLM_CACHE_DIR, enabled=settings.LLM_CACHE_ENABLED)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def directory(self) -> Path:
        return self._dir

    # ------------------------------------------------------------------
    @staticmethod
    def cache_key(request: LLMRequest) -> str:
        """md5 over prompt, system prompt, temperature, max tokens and schema, in that order."""
        payload = json.dumps(
            {
                "prompt": request.prompt,
                "systemPrompt": request.system_prompt,
                "temperature": request.temperature,
                "maxTokens": request.max_tokens,
                "schema": _canonical(request.schema),
            },
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def path_for(self, request: LLMRequest) -> Path:
        return self._dir / f"{self.cache_key(request)}.json"

    def _entry_path(self, request: LLMRequest) -> Optional[Path]:
        """``path_for`` that logs and returns None when the request cannot be keyed."""
        try:
            return self.path_for(request)
        except (TypeError, ValueError) as exc:
            logger.warning(f"[ResponseCache] Request cannot be keyed, bypassing cache: {exc}")
            return None

    def lookup(self, request: LLMRequest) -> CacheLookup:
        """Read the entry for ``request`` without raising."""
        if not self._enabled:
            return CacheLookup(None, CacheMiss.DISABLED)

        path = self._entry_path(request)
        if path is None:
            return CacheLookup(None, CacheMiss.CORRUPT)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return CacheLookup(None, CacheMiss.ABSENT)
        except OSError as exc:
            logger.warning(f"[ResponseCache] Error reading {path.name}: {exc}")
            return CacheLookup(None, CacheMiss.CORRUPT)

        try:
            stored = _RESPONSE_ADAPTER.validate_json(raw)
        except ValueError as exc:
            logger.warning(f"[ResponseCache] Corrupt entry {path.name}, treating as miss: {exc}")
            return CacheLookup(None, CacheMiss.CORRUPT)

        logger.debug(f"[ResponseCache] Cache hit for key: {path.stem}")
        return CacheLookup(dataclasses.replace(stored, cached=True, fallback_errors=()))

    # Async API used by the router -----------------------------------------
    async def get(self, request: LLMRequest) -> Optional[LLMResponse]:
        result = self.lookup(request)
        if result.hit:
            metrics.record_cache_lookup("hit")
        else:
            label = "miss" if result.miss is CacheMiss.ABSENT else result.miss.value
            metrics.record_cache_lookup(label)
        return result.response

    async def set(self, request: LLMRequest, response: LLMResponse) -> None:
        if not self._enabled:
            return

        path = self._entry_path(request)
        if path is None:
            return
        tmp_path = path.with_name(f"{path.stem}.{uuid.uuid4().hex}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            stored = dataclasses.replace(response, cached=False)
            tmp_path.write_bytes(_RESPONSE_ADAPTER.dump_json(stored, indent=2, exclude=_NOT_PERSISTED))
            # Atomic replace on same FS.
            tmp_path.replace(path)
            logger.debug(f"[ResponseCache] Cached response for key: {path.stem}")
        except OSError as exc:
            logger.warning(f"[ResponseCache] Error writing cache entry {path.name}: {exc}")
            with contextlib.suppress(OSError):
                tmp_path.unlink()

    async def clear(self) -> int:
        """Delete every entry; returns how many were removed."""
        if not self._dir.is_dir():
            return 0
        removed = 0
        for pattern in ("*.json", "*.tmp"):
            for entry in self._dir.glob(pattern):
                try:
                    entry.unlink()
                except FileNotFoundError:
                    continue
                except OSError as exc:
                    logger.warning(f"[ResponseCache] Could not delete {entry.name}: {exc}")
                    continue
                if entry.suffix == ".json":
                    removed += 1
        logger.info(f"[ResponseCache] Cleared {removed} cached responses")
        return removed

    def stats(self) -> Dict[str, Any]:
        entries = len(list(self._dir.glob("*.json"))) if self._dir.is_dir() else 0
        return {
            "enabled": self._enabled,
            "directory": str(self._dir),
            "entries": entries,
        }
