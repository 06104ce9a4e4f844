"""Conversion helpers that turn raw snapshot JSON into service models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from ..models import License, UsageObservation


@dataclass(slots=True)
class Snapshot:
    """Licenses and usage observations read from one export."""

    licenses: List[License] = field(default_factory=list)
    usage: List[UsageObservation] = field(default_factory=list)


def _pick(record: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in record:
            return record[name]
    return None


class SnapshotNormalizer:
    """Normalize raw snapshot records into :class:`License` and usage models."""

    def normalize(self, raw: Mapping[str, Any]) -> Snapshot:
        """Return a :class:`Snapshot` for the supplied document."""

        license_rows: Iterable[Any] = raw.get("licenses", []) or []
        usage_rows: Iterable[Any] = raw.get("usage", []) or []

        licenses = [
            subject
            for subject in (self._normalize_license(row) for row in license_rows)
            if subject is not None
        ]
        usage = [
            observation
            for observation in (self._normalize_usage(row) for row in usage_rows)
            if observation is not None
        ]
        return Snapshot(licenses=licenses, usage=usage)

    # ------------------------------------------------------------------
    def _normalize_license(self, row: Any) -> Optional[License]:
        if not isinstance(row, Mapping):
            return None

        license_id = _pick(row, "id", "Id")
        if license_id in (None, ""):
            return None

        category_id = _pick(row, "categoryId", "category_id", "CategoryId")
        vendor = _pick(row, "vendor", "Vendor")

        return License(
            id=str(license_id),
            name=str(_pick(row, "name", "Name") or ""),
            vendor=str(vendor) if vendor is not None else None,
            category_id=str(category_id) if category_id is not None else None,
            seats_purchased=self._seat_count(
                _pick(row, "seatsPurchased", "seats_purchased", "SeatsPurchased")
            ),
            seats_assigned=self._seat_count(
                _pick(row, "seatsAssigned", "seats_assigned", "SeatsAssigned")
            ),
            expires_on_utc=self._timestamp(
                _pick(row, "expiresOnUtc", "expires_on_utc", "ExpiresOnUtc")
            ),
        )

    def _normalize_usage(self, row: Any) -> Optional[UsageObservation]:
        if not isinstance(row, Mapping):
            return None

        license_id = _pick(row, "licenseId", "license_id", "LicenseId")
        usage_date = self._date(_pick(row, "usageDateUtc", "usage_date", "UsageDateUtc"))
        seats = self._seat_count(_pick(row, "maxSeatsUsed", "max_seats_used", "MaxSeatsUsed"))
        if license_id in (None, "") or usage_date is None or seats is None:
            return None

        return UsageObservation(
            license_id=str(license_id), usage_date=usage_date, max_seats_used=seats
        )

    # ------------------------------------------------------------------
    def _seat_count(self, value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            if text.lstrip("-").isdigit():
                return int(text)
        return None

    def _timestamp(self, value: Any) -> Optional[datetime]:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value.strip():
            text = value.strip()
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                return None
        else:
            return None

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    def _date(self, value: Any) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        timestamp = self._timestamp(value)
        return timestamp.date() if timestamp is not None else None
