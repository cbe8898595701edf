"""Draft persistence.

A draft is a locally persisted snapshot of an unfinished form. Each form type
owns one draft slot, addressed by the schema's fixed storage key, in a
device-local key-value storage. Drafts are not shared across devices or users.

Persistence never gets in the way of editing or submitting: storage failures
are logged and swallowed, and a stored draft that cannot be parsed, does not
have the expected structure or was written by another schema version is
discarded and reported as "no draft".

Usage:
    >>> from catalog_intake.forms import PRODUCT_FORM
    >>> from catalog_intake.state import FormState
    >>> store = DraftStore(MemoryStorage(), PRODUCT_FORM)
    >>> record = DraftRecord.capture(FormState.initial(PRODUCT_FORM).set_field("sku", "ROSE-1"))
    >>> store.save(record)
    True
    >>> store.load() == record
    True
"""

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dateutil.parser import isoparse
from jsonschema import Draft7Validator
from typing_extensions import Protocol

from catalog_intake.errors import PersistenceError, SchemaVersionMismatch
from catalog_intake.schema import FormSchema
from catalog_intake.state import FormState


logger = logging.getLogger(__name__)


DRAFT_RECORD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "formSchemaVersion": {"type": "string", "minLength": 1},
        "values": {"type": "object"},
        "savedAt": {"type": "string", "minLength": 1},
    },
    "required": ["formSchemaVersion", "values", "savedAt"],
}

_draft_record_validator = Draft7Validator(DRAFT_RECORD_SCHEMA)


@dataclass(frozen=True)
class DraftRecord:
    """A stored snapshot of a form.

    Attributes:
        form_schema_version: Version of the schema the values were written under
        values: Plain record of the form (see FormState.to_plain_record)
        saved_at: UTC time of the save
    """
    form_schema_version: str
    values: Dict[str, Any]
    saved_at: datetime

    @classmethod
    def capture(cls, state: FormState, saved_at: Optional[datetime] = None) -> "DraftRecord":
        """Snapshot ``state`` as a draft record."""
        return cls(
            form_schema_version=state.schema.version,
            values=state.to_plain_record(),
            saved_at=saved_at or datetime.now(timezone.utc),
        )

    def ensure_compatible(self, schema: FormSchema) -> None:
        """Raise SchemaVersionMismatch unless written under ``schema``'s version."""
        if self.form_schema_version != schema.version:
            raise SchemaVersionMismatch(self.form_schema_version, schema.version)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "formSchemaVersion": self.form_schema_version,
            "values": self.values,
            "savedAt": self.saved_at.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: Any) -> "DraftRecord":
        """Create DraftRecord from dict.

        Raises:
            ValueError: If ``data`` does not have the draft record structure
        """
        error = next(iter(_draft_record_validator.iter_errors(data)), None)
        if error is not None:
            location = ".".join(str(p) for p in error.path) or "record"
            raise ValueError(f"Invalid draft record at {location}: {error.message}")

        return cls(
            form_schema_version=data["formSchemaVersion"],
            values=data["values"],
            saved_at=isoparse(data["savedAt"]),
        )

    @classmethod
    def from_json(cls, text: str) -> "DraftRecord":
        """Parse a draft record from JSON.

        Raises:
            ValueError: If ``text`` is not JSON or not a draft record
        """
        return cls.from_dict(json.loads(text))


class KeyValueStorage(Protocol):
    """Device-local string key-value storage."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def close(self) -> None:
        ...


class MemoryStorage:
    """In-process storage. Contents do not survive the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def close(self) -> None:
        pass

    def __contains__(self, key: str) -> bool:
        return key in self._data


_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


class FileStorage:
    """Storage keeping one JSON file per key in a local directory.

    Writes go through a temporary file and an atomic rename, so a crash during
    a save leaves the previous draft in place.

    Raises:
        PersistenceError: From any operation that fails at the filesystem level
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(str(self.directory), f"Cannot create draft directory: {e}") from e

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(key, "Storage key contains unsupported characters")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(key, f"Cannot read draft: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=str(self.directory), prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(key, f"Cannot write draft: {e}") from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(key, f"Cannot remove draft: {e}") from e

    def close(self) -> None:
        pass


class DraftStore:
    """Saves, loads and clears the draft slot of one form type.

    Attributes:
        storage: Injected key-value storage
        schema: Schema whose draft slot this store manages

    Saving is idempotent and last-write-wins; callers debounce it (see
    FormSession). None of the operations raise on storage failure.
    """

    def __init__(self, storage: KeyValueStorage, schema: FormSchema):
        self.storage = storage
        self.schema = schema
        self._closed = False
        self.discarded_reason: Optional[str] = None

    @property
    def key(self) -> str:
        return self.schema.storage_key

    @property
    def closed(self) -> bool:
        return self._closed

    def save(self, record: DraftRecord) -> bool:
        """Overwrite the draft slot with ``record``.

        Returns:
            True if the record was written, False if persistence failed
        """
        if self._closed:
            logger.warning("Draft store for %s is closed; save skipped", self.key)
            return False
        try:
            self.storage.set(self.key, record.to_json())
        except (PersistenceError, TypeError, ValueError) as e:
            logger.warning("Failed to save draft %s: %s", self.key, e)
            return False
        logger.debug("Saved draft %s", self.key)
        return True

    def load(self) -> Optional[DraftRecord]:
        """Return the stored draft, or None.

        None is returned when the slot is empty, unreadable, unparseable or was
        written under another schema version. Corrupt and incompatible drafts
        are removed from the slot. The reason of the last discard is kept in
        ``discarded_reason``.
        """
        self.discarded_reason = None
        if self._closed:
            return None
        try:
            raw = self.storage.get(self.key)
        except PersistenceError as e:
            logger.warning("Failed to read draft %s: %s", self.key, e)
            return None
        if raw is None:
            return None

        try:
            record = DraftRecord.from_json(raw)
            record.ensure_compatible(self.schema)
        except SchemaVersionMismatch as e:
            logger.info("Discarding incompatible draft %s: %s", self.key, e)
            self.discarded_reason = str(e)
            self.clear()
            return None
        except ValueError as e:
            logger.warning("Discarding unreadable draft %s: %s", self.key, e)
            self.discarded_reason = str(e)
            self.clear()
            return None
        return record

    def clear(self) -> None:
        """Remove the stored draft, if any."""
        if self._closed:
            return
        try:
            self.storage.remove(self.key)
        except PersistenceError as e:
            logger.warning("Failed to clear draft %s: %s", self.key, e)

    def close(self) -> None:
        """Release the storage. Later calls become no-ops."""
        if self._closed:
            return
        self._closed = True
        self.storage.close()

    def __enter__(self) -> "DraftStore":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = [
    "DRAFT_RECORD_SCHEMA",
    "DraftRecord",
    "KeyValueStorage",
    "MemoryStorage",
    "FileStorage",
    "DraftStore",
]
