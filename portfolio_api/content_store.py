"""
Content Store
Posts and projects persisted as JSON arrays, with their uploaded media
"""

import os
import json
import logging
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ContentStoreError, NotFound, StorageUnavailable, ValidationError
from .media import MediaInput, media_path, now_millis

logger = logging.getLogger(__name__)


class Collection:
    """Field rules and the backing file for one record set"""

    def __init__(self, name, path, required, optional, defaults=None):
        self.name = name
        self.path = Path(path)
        self.required = tuple(required)
        self.optional = tuple(optional)
        self.defaults = defaults or {}
        self.lock = threading.Lock()

    @property
    def fields(self):
        return self.required + self.optional

    @property
    def singular(self):
        return self.name[:-1].capitalize()


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with milliseconds, e.g. 2025-01-31T12:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _field_message(names, suffix):
    text = ' and '.join(names)
    return f"{text[0].upper()}{text[1:]} {suffix}"


def _check_strings(coll, fields):
    """Reject non-string values for the text fields of a collection"""
    wrong = [f for f in coll.fields
             if f != 'media' and fields.get(f) is not None and not isinstance(fields[f], str)]
    if wrong:
        raise ValidationError(_field_message(wrong, 'must be a string' if len(wrong) == 1 else 'must be strings'))


class ContentStore:
    def __init__(self, data_dir, upload_dir, uploads_url='/uploads'):
        self.data_dir = Path(data_dir)
        self.upload_dir = Path(upload_dir)
        self.uploads_url = uploads_url.rstrip('/')
        self.ensure_dirs()

        self.collections = {
            'posts': Collection(
                'posts', self.data_dir / 'posts.json',
                required=('title', 'content'),
                optional=('type', 'link', 'blogLink', 'media'),
                defaults={'type': 'blog'},
            ),
            'projects': Collection(
                'projects', self.data_dir / 'projects.json',
                required=('title',),
                optional=('link', 'media'),
            ),
        }

    def ensure_dirs(self):
        """Ensure data and uploads directories exist"""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self.upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Could not create storage directories: {e}")

    def collection(self, name) -> Collection:
        try:
            return self.collections[name]
        except KeyError:
            raise ValidationError(f"Unknown collection: {name}")

    # Reads

    def list_all(self, name) -> List[Dict[str, Any]]:
        """Get every record in a collection, newest first"""
        coll = self.collection(name)
        with coll.lock:
            return self._load(coll)

    def get(self, name, record_id) -> Dict[str, Any]:
        coll = self.collection(name)
        with coll.lock:
            records = self._load(coll)
        index = self._find(records, record_id)
        if index is None:
            raise NotFound(f"{coll.singular} {record_id} not found")
        return records[index]

    # Mutations

    def create(self, name, fields, media=None) -> Dict[str, Any]:
        """Validate, resolve media, assign an id and prepend a new record"""
        coll = self.collection(name)
        media = media or MediaInput.none()
        fields = fields or {}

        try:
            missing = [f for f in coll.required if _is_blank(fields.get(f))]
            if missing:
                raise ValidationError(_field_message(missing, 'required'))
            _check_strings(coll, fields)
        except ValidationError:
            media.discard(self.upload_dir)
            raise

        with coll.lock:
            try:
                records = self._load(coll)
                media_url = media.resolve(self.upload_dir, self.uploads_url)

                record = {'id': self._next_id(records)}
                for field in coll.fields:
                    if field == 'media':
                        record['media'] = media_url
                    elif field in coll.required:
                        record[field] = fields[field]
                    else:
                        record[field] = self._optional_value(coll, field, fields.get(field))
                record['createdAt'] = utc_timestamp()

                records.insert(0, record)
                self._save(coll, records)
            except StorageUnavailable:
                media.discard(self.upload_dir)
                raise

        logger.info(f"✅ Created {coll.singular.lower()} {record['id']}: {record['title']}")
        return record

    def update(self, name, record_id, fields, media=None) -> Dict[str, Any]:
        """Merge provided fields over an existing record"""
        coll = self.collection(name)
        media = media or MediaInput.none()
        fields = fields or {}

        changes = {k: v for k, v in fields.items() if k in coll.fields and k != 'media'}

        with coll.lock:
            try:
                records = self._load(coll)
                index = self._find(records, record_id)
                if index is None:
                    raise NotFound(f"{coll.singular} {record_id} not found")

                _check_strings(coll, changes)
                emptied = [f for f in coll.required if f in changes and _is_blank(changes[f])]
                if emptied:
                    raise ValidationError(_field_message(emptied, 'cannot be empty'))
                if not changes and media.is_none:
                    raise ValidationError(f"{coll.singular} data required")

                record = dict(records[index])
                for field, value in changes.items():
                    if field in coll.required:
                        record[field] = value
                    else:
                        record[field] = self._optional_value(coll, field, value)

                old_media = record.get('media')
                new_media = media.resolve(self.upload_dir, self.uploads_url)
                if new_media is not None:
                    record['media'] = new_media

                record['updatedAt'] = utc_timestamp()
                records[index] = record
                self._save(coll, records)
            except ContentStoreError:
                media.discard(self.upload_dir)
                raise

        if new_media is not None and old_media != new_media:
            self._remove_media(old_media)

        logger.info(f"📝 Updated {coll.singular.lower()} {record_id}")
        return record

    def delete(self, name, record_id) -> Dict[str, Any]:
        """Remove a record and, best effort, its uploaded media file"""
        coll = self.collection(name)
        with coll.lock:
            records = self._load(coll)
            index = self._find(records, record_id)
            if index is None:
                raise NotFound(f"{coll.singular} {record_id} not found")

            removed = records.pop(index)
            self._save(coll, records)

        self._remove_media(removed.get('media'))
        logger.info(f"🗑️ Deleted {coll.singular.lower()} {record_id}")
        return removed

    # Helpers

    def _load(self, coll) -> List[Dict[str, Any]]:
        try:
            if not coll.path.exists():
                self._save(coll, [])
                return []
            with open(coll.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading {coll.path}: {e}")
            raise StorageUnavailable(f"Could not read {coll.name}: {e}")

        if not isinstance(data, list):
            logger.error(f"Backing file {coll.path} does not hold a JSON array")
            raise StorageUnavailable(f"Could not read {coll.name}: expected a JSON array")
        return data

    def _save(self, coll, records):
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{coll.name}-", suffix='.json', dir=str(coll.path.parent))
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, coll.path)
        except OSError as e:
            logger.error(f"Error writing {coll.path}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StorageUnavailable(f"Could not write {coll.name}: {e}")

    @staticmethod
    def _find(records, record_id) -> Optional[int]:
        for i, record in enumerate(records):
            if str(record.get('id')) == str(record_id):
                return i
        return None

    @staticmethod
    def _next_id(records) -> int:
        highest = max((r['id'] for r in records if isinstance(r.get('id'), int)), default=0)
        return max(now_millis(), highest + 1)

    @staticmethod
    def _optional_value(coll, field, value):
        if _is_blank(value):
            return coll.defaults.get(field)
        return value

    def _remove_media(self, media_url):
        path = media_path(media_url, self.upload_dir, self.uploads_url)
        if path is None:
            return
        try:
            path.unlink()
            logger.info(f"🗑️ Removed media file: {path.name}")
        except OSError as e:
            logger.warning(f"Could not remove media file {path}: {e}")
