"""
Media inputs for records
An uploaded file, an inline base64 image, or nothing
"""

import re
import time
import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from werkzeug.utils import secure_filename

from .errors import ValidationError, StorageUnavailable

logger = logging.getLogger(__name__)

INLINE_IMAGE_PATTERN = re.compile(r'^data:image/[\w.+-]+;base64,', re.IGNORECASE)


def now_millis() -> int:
    return int(time.time() * 1000)


def upload_filename(original_name, millis=None):
    """Build `<epoch-millis>-<name>` from a sanitised client filename"""
    if millis is None:
        millis = now_millis()
    name = secure_filename(original_name or '') or 'upload'
    return f"{millis}-{name}"


def open_exclusive(upload_dir, name):
    """
    Create a new file under upload_dir without replacing an existing one
    A taken name gets a `-N` suffix before the extension
    """
    path = Path(upload_dir) / name
    suffix = 1
    while True:
        try:
            return path, open(path, 'xb')
        except FileExistsError:
            path = path.with_name(f"{Path(name).stem}-{suffix}{Path(name).suffix}")
            suffix += 1


def save_upload(file_storage, upload_dir) -> 'MediaInput':
    """Write a werkzeug FileStorage into the uploads directory"""
    upload_dir = Path(upload_dir)
    filename = upload_filename(file_storage.filename)
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
        path, f = open_exclusive(upload_dir, filename)
        with f:
            file_storage.save(f)
    except OSError as e:
        logger.error(f"Error saving upload {filename}: {e}")
        raise StorageUnavailable(f"Failed to save upload: {e}")

    logger.info(f"📎 Upload saved: {path.name}")
    return MediaInput.uploaded(path.name)


def media_path(media_url, upload_dir, uploads_url='/uploads') -> Optional[Path]:
    """Map a stored media URL to its file, or None when it lives elsewhere"""
    if not media_url or not isinstance(media_url, str):
        return None
    prefix = uploads_url.rstrip('/') + '/'
    if not media_url.startswith(prefix):
        return None
    name = media_url[len(prefix):]
    if not name or '/' in name or '\\' in name or name in ('.', '..'):
        return None
    return Path(upload_dir) / name


class MediaInput:
    NONE = 'none'
    UPLOADED = 'uploaded'
    INLINE = 'inline'

    def __init__(self, kind, value=None):
        self.kind = kind
        self.value = value

    @classmethod
    def none(cls):
        return cls(cls.NONE)

    @classmethod
    def uploaded(cls, filename):
        return cls(cls.UPLOADED, filename)

    @classmethod
    def inline(cls, payload):
        if not is_inline_image(payload):
            raise ValidationError('Inline media must be a base64 image data URI')
        return cls(cls.INLINE, payload)

    @classmethod
    def from_value(cls, value):
        """Classify a raw `media` request field"""
        if is_inline_image(value):
            return cls.inline(value)
        return cls.none()

    @property
    def is_none(self):
        return self.kind == self.NONE

    def __repr__(self):
        if self.kind == self.INLINE:
            return f"MediaInput(inline, {len(self.value)} chars)"
        return f"MediaInput({self.kind}, {self.value!r})"

    def resolve(self, upload_dir, uploads_url='/uploads') -> Optional[str]:
        """Return the media URL for this input, writing inline payloads to disk"""
        upload_dir = Path(upload_dir)

        if self.kind == self.NONE:
            return None

        if self.kind == self.UPLOADED:
            name = Path(self.value).name
            if not (upload_dir / name).is_file():
                raise ValidationError(f"Uploaded file not found: {name}")
            return f"{uploads_url.rstrip('/')}/{name}"

        data = decode_inline_image(self.value)
        name = self._write_inline(upload_dir, data)
        # later discard() must remove the written file
        self.kind = self.UPLOADED
        self.value = name
        return f"{uploads_url.rstrip('/')}/{name}"

    def discard(self, upload_dir):
        """Remove an uploaded file that no record will reference"""
        if self.kind != self.UPLOADED:
            return
        path = Path(upload_dir) / Path(self.value).name
        try:
            path.unlink()
            logger.info(f"🗑️ Discarded unused upload: {path.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove unused upload {path}: {e}")

    @staticmethod
    def _write_inline(upload_dir, data):
        millis = now_millis()
        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
            path, f = open_exclusive(upload_dir, f"{millis}.png")
            with f:
                f.write(data)
            name = path.name
        except OSError as e:
            logger.error(f"Error writing inline image: {e}")
            raise StorageUnavailable(f"Failed to write inline image: {e}")

        logger.info(f"🖼️ Inline image saved: {name}")
        return name


def is_inline_image(value) -> bool:
    return isinstance(value, str) and bool(INLINE_IMAGE_PATTERN.match(value))


def decode_inline_image(payload) -> bytes:
    encoded = INLINE_IMAGE_PATTERN.sub('', payload, count=1)
    encoded = ''.join(encoded.split())
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError('Inline media is not valid base64')
    if not data:
        raise ValidationError('Inline media is empty')
    return data
