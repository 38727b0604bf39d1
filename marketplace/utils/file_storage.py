"""
utils/file_storage.py

Media intake: validates uploaded files and saves them to local disk.
Swap out `MediaStore._write` internals later for S3 / Cloudinary / etc.
without touching any router code.

Stored files are served by the static mount in main.py, so the reference
persisted on a listing or post is the relative URL, e.g.
'/media/properties/3f2a...c1.jpg'.
"""

import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import aiofiles
from starlette.datastructures import UploadFile
from structlog import get_logger

from marketplace.core.config import Settings
from marketplace.core.errors import RejectedFile, ValidationError

logger = get_logger()

MB = 1024 * 1024

# iOS / some Android clients send these instead of the real MIME type
_GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


@dataclass(frozen=True)
class MediaConstraints:
    subdir: str
    allowed_prefixes: tuple[str, ...]
    max_bytes: int
    max_files: int = 1


@dataclass(frozen=True)
class StoredMedia:
    url: str
    kind: str  # "image" | "video"


def _resolve_content_type(file: UploadFile) -> str:
    """
    Return the lower-cased MIME type of the upload.

    Falls back to guessing from the filename extension when the client sent a
    generic type, as the iOS simulator does.
    """
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type in _GENERIC_CONTENT_TYPES:
        guessed, _ = mimetypes.guess_type(file.filename or "")
        content_type = (guessed or content_type).lower()
    return content_type


def _extension(file: UploadFile, content_type: str) -> str:
    ext = Path(file.filename or "").suffix.lower()
    if not ext:
        ext = mimetypes.guess_extension(content_type) or ""
    return ".jpg" if ext == ".jpeg" else ext


class MediaStore:
    def __init__(self, root: Path, url_prefix: str = "/media", *,
                 property_max_mb: int = 50, blog_cover_max_mb: int = 5, max_files: int = 10):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")

        self.property_media = MediaConstraints(
            subdir="properties",
            allowed_prefixes=("image/", "video/"),
            max_bytes=property_max_mb * MB,
            max_files=max_files,
        )
        self.blog_cover = MediaConstraints(
            subdir="blogs",
            allowed_prefixes=("image/",),
            max_bytes=blog_cover_max_mb * MB,
            max_files=1,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaStore":
        return cls(
            Path(settings.MEDIA_ROOT),
            settings.MEDIA_URL_PREFIX,
            property_max_mb=settings.PROPERTY_MEDIA_MAX_MB,
            blog_cover_max_mb=settings.BLOG_COVER_MAX_MB,
            max_files=settings.MAX_MEDIA_FILES,
        )

    def ensure_dirs(self) -> None:
        for constraints in (self.property_media, self.blog_cover):
            (self.root / constraints.subdir).mkdir(parents=True, exist_ok=True)

    # ─── Intake ───────────────────────────────────────────────────────────────

    async def accept(self, files: Sequence[UploadFile], constraints: MediaConstraints) -> list[StoredMedia]:
        """
        Validate and save a batch of uploads, returning references in upload order.

        The whole batch fails with RejectedFile if any file has a disallowed type
        or exceeds the size ceiling; files already written by this call are
        removed before raising.
        """
        if not files:
            return []
        if len(files) > constraints.max_files:
            raise ValidationError(f"At most {constraints.max_files} file(s) may be uploaded at once.")

        # ── Type check for the whole batch before anything touches disk ───────
        content_types = []
        for f in files:
            content_type = _resolve_content_type(f)
            if not content_type.startswith(constraints.allowed_prefixes):
                logger.info("Rejected upload", filename=f.filename, content_type=content_type)
                raise RejectedFile(
                    f.filename or "upload",
                    "unsupported file type",
                    f"File '{f.filename}' has unsupported type '{content_type or 'unknown'}'. "
                    f"Allowed: {', '.join(p + '*' for p in constraints.allowed_prefixes)}",
                )
            content_types.append(content_type)

        stored: list[StoredMedia] = []
        try:
            for f, content_type in zip(files, content_types):
                stored.append(await self._write(f, content_type, constraints))
        except Exception:
            self.remove(m.url for m in stored)
            raise
        return stored

    async def _write(self, file: UploadFile, content_type: str, constraints: MediaConstraints) -> StoredMedia:
        # ── Read at most one byte past the ceiling ────────────────────────────
        contents = await file.read(constraints.max_bytes + 1)
        if len(contents) > constraints.max_bytes:
            logger.info("Rejected upload", filename=file.filename, reason="too large")
            raise RejectedFile(
                file.filename or "upload",
                "file too large",
                f"File '{file.filename}' exceeds {constraints.max_bytes // MB}MB limit.",
            )

        # ── Save to disk ──────────────────────────────────────────────────────
        filename = f"{uuid.uuid4().hex}{_extension(file, content_type)}"
        directory = self.root / constraints.subdir
        directory.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(directory / filename, "wb") as out:
            await out.write(contents)

        kind = "video" if content_type.startswith("video/") else "image"
        return StoredMedia(url=f"{self.url_prefix}/{constraints.subdir}/{filename}", kind=kind)

    # ─── Removal ──────────────────────────────────────────────────────────────

    def path_for(self, url: str) -> Optional[Path]:
        """Map a stored reference back to its file, or None if it is not ours."""
        if not url or not url.startswith(self.url_prefix + "/"):
            return None
        relative = url[len(self.url_prefix) + 1:]
        root = self.root.resolve()
        path = (root / relative).resolve()
        if root not in path.parents:
            return None
        return path

    def remove(self, urls: Iterable[str]) -> int:
        """
        Delete stored files by reference. Best-effort: failures are logged and
        skipped, references this store did not produce are ignored.
        Returns the number of files deleted.
        """
        removed = 0
        for url in urls:
            path = self.path_for(url)
            if path is None:
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("Failed to remove media file", url=url, error=str(exc))
        return removed
