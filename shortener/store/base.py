"""
Storage contract for link records.

Any backend works as long as it offers an atomic unique insert and an atomic
conditional update. The service never relies on anything else for
correctness under concurrent requests.
"""

from abc import ABC, abstractmethod

from shortener.schemas import LinkRecord


class LinkStore(ABC):
    @abstractmethod
    def find_by_code(self, code: str) -> LinkRecord | None:
        raise NotImplementedError

    def exists(self, code: str) -> bool:
        return self.find_by_code(code) is not None

    @abstractmethod
    def insert(self, record: LinkRecord) -> None:
        """
        Persist a new record.

        Raises:
            DuplicateKeyError: a record with the same short code exists. When
                two callers race on one code exactly one insert succeeds.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, record: LinkRecord) -> LinkRecord:
        """
        Replace the stored record if its version still equals ``record.version``.

        The write lands completely or not at all. Returns the stored record,
        whose version is one higher than the one passed in.

        Raises:
            NotFoundError: no record with this short code.
            VersionConflictError: the record changed since it was read.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. No-op by default."""
