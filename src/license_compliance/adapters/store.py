"""Finding store interface plus in-memory and JSON file implementations."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..models import Finding, FindingKind, FindingStatus


class FindingStoreError(RuntimeError):
    """Raised when findings cannot be loaded or persisted."""


class FindingNotFoundError(FindingStoreError):
    """Raised when a finding id does not exist in the store."""


class FindingStore(ABC):
    """Durable storage for findings keyed by ``(license_id, rule_key)``."""

    @abstractmethod
    def load_findings(self, rule_keys: Sequence[str]) -> List[Finding]:
        """Return detached copies of every finding (any status) for ``rule_keys``.

        Findings without a license reference are excluded.
        """

    @abstractmethod
    def save(self, findings: Sequence[Finding]) -> None:
        """Insert or replace ``findings`` as one transaction."""

    @abstractmethod
    def get(self, finding_id: str) -> Finding:
        """Return a detached copy of the finding or raise :class:`FindingNotFoundError`."""

    @abstractmethod
    def list_findings(self, kind: Optional[FindingKind] = None) -> List[Finding]:
        """Return detached copies of stored findings, optionally filtered by kind."""

    @abstractmethod
    def count_by_status(self, kind: FindingKind) -> Dict[FindingStatus, int]:
        """Return store-wide totals per status for one finding kind."""


def _ensure_unique_keys(records: Iterable[Finding]) -> None:
    seen: Dict[tuple[str, str], str] = {}
    for record in records:
        if record.license_id is None:
            continue
        key = (record.license_id, record.rule_key)
        existing_id = seen.get(key)
        if existing_id is not None and existing_id != record.id:
            raise FindingStoreError(
                f"Duplicate finding for license {record.license_id} and rule {record.rule_key}"
            )
        seen[key] = record.id


class InMemoryFindingStore(FindingStore):
    """Dictionary-backed store; a failed ``save`` leaves the records untouched."""

    def __init__(self, findings: Sequence[Finding] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, Finding] = {}
        if findings:
            self.save(findings)

    # ------------------------------------------------------------------
    def load_findings(self, rule_keys: Sequence[str]) -> List[Finding]:
        keys = set(rule_keys)
        with self._lock:
            records = self._read_records()
        return [
            replace(record)
            for record in records.values()
            if record.license_id is not None and record.rule_key in keys
        ]

    def save(self, findings: Sequence[Finding]) -> None:
        with self._lock:
            staged = dict(self._read_records())
            for finding in findings:
                staged[finding.id] = replace(finding)
            _ensure_unique_keys(staged.values())
            self._write_records(staged)

    def get(self, finding_id: str) -> Finding:
        with self._lock:
            record = self._read_records().get(finding_id)
        if record is None:
            raise FindingNotFoundError(f"Finding not found: {finding_id}")
        return replace(record)

    def list_findings(self, kind: Optional[FindingKind] = None) -> List[Finding]:
        with self._lock:
            records = self._read_records()
        return [
            replace(record)
            for record in records.values()
            if kind is None or record.kind is kind
        ]

    def count_by_status(self, kind: FindingKind) -> Dict[FindingStatus, int]:
        counts = {status: 0 for status in FindingStatus}
        for record in self.list_findings(kind):
            counts[record.status] += 1
        return counts

    # ------------------------------------------------------------------
    def _read_records(self) -> Dict[str, Finding]:
        return self._records

    def _write_records(self, records: Dict[str, Finding]) -> None:
        self._records = records


class JsonFileFindingStore(InMemoryFindingStore):
    """Store findings in a JSON document, replacing the file atomically on save."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path).resolve()
        super().__init__()

    def _read_records(self) -> Dict[str, Finding]:
        if not self.path.exists():
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise FindingStoreError(f"Invalid JSON in finding store: {self.path}") from exc
        except OSError as exc:
            raise FindingStoreError(f"Failed to read finding store {self.path}") from exc

        entries = data.get("findings", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise FindingStoreError(f"Finding store must contain a 'findings' list: {self.path}")

        records: Dict[str, Finding] = {}
        for entry in entries:
            try:
                finding = Finding.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                raise FindingStoreError(f"Malformed finding record in {self.path}") from exc
            records[finding.id] = finding
        return records

    def _write_records(self, records: Dict[str, Finding]) -> None:
        payload = {"findings": [record.to_dict() for record in records.values()]}
        temp_path: Optional[Path] = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = Path(handle.name)
                json.dump(payload, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())

            os.replace(temp_path, self.path)
        except OSError as exc:
            raise FindingStoreError(f"Failed to write finding store {self.path}") from exc
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)


__all__ = [
    "FindingNotFoundError",
    "FindingStore",
    "FindingStoreError",
    "InMemoryFindingStore",
    "JsonFileFindingStore",
]
