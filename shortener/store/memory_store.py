import threading

from shortener.errors import DuplicateKeyError, NotFoundError, VersionConflictError
from shortener.schemas import LinkRecord
from shortener.store.base import LinkStore


class MemoryLinkStore(LinkStore):
    """
    In-process store. Records are copied on the way in and out so callers
    never share mutable state with the store.
    """

    def __init__(self) -> None:
        self._records: dict[str, LinkRecord] = {}
        self._lock = threading.Lock()

    def find_by_code(self, code: str) -> LinkRecord | None:
        with self._lock:
            record = self._records.get(code)
            return record.model_copy(deep=True) if record is not None else None

    def exists(self, code: str) -> bool:
        with self._lock:
            return code in self._records

    def insert(self, record: LinkRecord) -> None:
        with self._lock:
            if record.short_code in self._records:
                raise DuplicateKeyError(record.short_code)
            self._records[record.short_code] = record.model_copy(deep=True)

    def update(self, record: LinkRecord) -> LinkRecord:
        with self._lock:
            current = self._records.get(record.short_code)
            if current is None:
                raise NotFoundError()
            if current.version != record.version:
                raise VersionConflictError(record.short_code)
            stored = record.model_copy(update={"version": record.version + 1}, deep=True)
            self._records[record.short_code] = stored
            return stored.model_copy(deep=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
