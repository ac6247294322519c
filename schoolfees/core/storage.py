"""Receipt file storage. Uploads land under UPLOAD_DIR; callers keep the returned path verbatim."""

import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from schoolfees.core.config import settings
from schoolfees.core.exceptions import FeeValidationError

ALLOWED_RECEIPT_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".pdf")
MAX_RECEIPT_BYTES = 5 * 1024 * 1024


def _write_bytes(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


async def save_receipt(file: Optional[UploadFile], upload_dir: Optional[str] = None) -> Optional[str]:
    """Store an uploaded receipt image and return its path. None when nothing was uploaded."""
    if file is None or not file.filename:
        return None
    suffix = Path(file.filename).suffix.lower()
    if suffix not in ALLOWED_RECEIPT_EXTENSIONS:
        raise FeeValidationError("Receipt must be an image (jpg, png, gif) or a PDF")

    content = await file.read()
    if not content:
        raise FeeValidationError("Receipt file is empty")
    if len(content) > MAX_RECEIPT_BYTES:
        raise FeeValidationError("Receipt file exceeds the 5 MB limit")

    base = Path(upload_dir or settings.upload_dir) / "receipts"
    target = base / f"receiptImage-{uuid.uuid4().hex}{suffix}"
    await run_in_threadpool(_write_bytes, target, content)
    return str(target)


def _unlink(path: Path) -> None:
    path.unlink(missing_ok=True)


async def discard_receipt(path: Optional[str]) -> None:
    """Remove a stored receipt whose payment was not recorded."""
    if path:
        await run_in_threadpool(_unlink, Path(path))
