"""JSON-file backed user store for the demo identity provider."""
from __future__ import annotations

import json
import os
import shutil
import tempfile
from dataclasses import dataclass, field
import threading
from typing import Any, Dict, List, Optional

__all__ = ["UserRecord", "UserStore"]

# Shared across UserStore instances; routes build one per request.
_store_lock = threading.Lock()


@dataclass
class UserRecord:
    username: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {"username": self.username, "attributes": dict(self.attributes)}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "UserRecord":
        attributes = data.get("attributes") or {}
        return cls(
            username=str(data["username"]),
            attributes={str(k): str(v) for k, v in attributes.items()},
        )


class UserStore:
    """Users persisted as a JSON list at ``path``.

    A missing file is an empty store.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def _read(self) -> List[UserRecord]:
        try:
            with open(self.path, "r", encoding="utf-8") as store_file:
                raw = json.load(store_file)
        except FileNotFoundError:
            return []
        if not isinstance(raw, list):
            raise ValueError(f"User store {self.path} does not contain a list")
        return [UserRecord.from_json(entry) for entry in raw]

    def _write(self, records: List[UserRecord]) -> None:
        target_dir = os.path.dirname(self.path) or "."
        os.makedirs(target_dir, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=target_dir, delete=False
        ) as temp_file:
            json.dump([record.to_json() for record in records], temp_file, indent=2, sort_keys=True)
            temp_file.write("\n")
            temp_path = temp_file.name
        shutil.move(temp_path, self.path)

    def find_by_attribute(self, name: str, value: str) -> Optional[UserRecord]:
        with _store_lock:
            records = self._read()
        matches = [record for record in records if record.attributes.get(name) == value]
        if len(matches) > 1:
            raise LookupError(f"{len(matches)} users share the attribute {name}={value}")
        return matches[0] if matches else None

    def add_user(self, record: UserRecord) -> None:
        with _store_lock:
            records = [r for r in self._read() if r.username != record.username]
            records.append(record)
            self._write(records)
