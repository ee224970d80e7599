# clayminds/services/tombstones.py
from __future__ import annotations

from typing import Iterable, List, Set

from clayminds.schemas.schema_evidence import EvidenceEntry
from clayminds.services.local_storage import LocalStorage

DELETED_EVIDENCE_URLS_KEY = "clayminds_deleted_evidence_urls"


class EvidenceTombstones:
    """photoUrls deleted locally; kept hidden even if the cloud still has them."""

    def __init__(self, storage: LocalStorage):
        self._storage = storage

    def load(self) -> Set[str]:
        raw = self._storage.get_json(DELETED_EVIDENCE_URLS_KEY, [])
        if not isinstance(raw, list):
            return set()
        return {str(url) for url in raw if url}

    def _save(self, urls: Set[str]) -> None:
        self._storage.set_json(DELETED_EVIDENCE_URLS_KEY, sorted(urls))

    def add(self, photo_url: str) -> None:
        urls = self.load()
        urls.add(photo_url)
        self._save(urls)

    def discard(self, photo_url: str) -> bool:
        urls = self.load()
        if photo_url not in urls:
            return False
        urls.discard(photo_url)
        self._save(urls)
        return True

    def __contains__(self, photo_url: str) -> bool:
        return photo_url in self.load()

    def mask(self, entries: Iterable[EvidenceEntry]) -> List[EvidenceEntry]:
        hidden = self.load()
        return [e for e in entries if e.photo_url not in hidden]
