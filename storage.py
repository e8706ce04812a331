# storage.py
import datetime
import logging
from pathlib import Path, PurePosixPath

from config import get_config
from errors import StorageError

logger = logging.getLogger(__name__)

BUCKETS = ("ngo-logos", "qr_codes", "success-stories", "ngo-docs", "wishlist-images")


def _bucket_dir(bucket, config=None):
    if bucket not in BUCKETS:
        raise StorageError(f"Unknown bucket: {bucket}")
    return Path((config or get_config()).storage_dir) / bucket


def _clean_path(path):
    p = PurePosixPath(str(path).replace("\\", "/"))
    if p.is_absolute() or ".." in p.parts or not p.parts:
        raise StorageError(f"Invalid object path: {path}")
    return p


def upload(bucket, path, data: bytes, upsert=False):
    """Stores data under bucket/path and returns the object path."""
    config = get_config()
    rel = _clean_path(path)
    target = _bucket_dir(bucket, config).joinpath(*rel.parts)
    if target.exists() and not upsert:
        raise StorageError(f"Object already exists: {bucket}/{rel}")
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as f:
        f.write(data)
    logger.info("Uploaded %s/%s (%d bytes)", bucket, rel, len(data))
    return str(rel)


def get_public_url(bucket, path):
    config = get_config()
    rel = _clean_path(path)
    _bucket_dir(bucket, config)
    return f"{config.storage_public_url.rstrip('/')}/{bucket}/{rel}"


def local_path(bucket, path):
    rel = _clean_path(path)
    return _bucket_dir(bucket).joinpath(*rel.parts)


def timestamped_name(prefix, filename):
    """Builds '<prefix>_<millis>.<ext>' from an uploaded file name."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
    millis = int(datetime.datetime.utcnow().timestamp() * 1000)
    return f"{prefix}_{millis}.{ext}"


def upload_file(bucket, folder, prefix, uploaded_file, upsert=False):
    """Uploads a Streamlit UploadedFile (or anything with .name and .getvalue())
    and returns its public URL.

    Raises StorageError if the generated name is already taken and upsert is off.
    """
    path = f"{folder}/{timestamped_name(prefix, uploaded_file.name)}"
    upload(bucket, path, uploaded_file.getvalue(), upsert=upsert)
    return get_public_url(bucket, path)
