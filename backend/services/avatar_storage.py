from fastapi import UploadFile
from functools import lru_cache
from pathlib import Path
from typing import Optional
from config.settings import settings
from core.errors import bad_request
import logging
import os
import secrets
import time

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/uploads"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

class AvatarStorage:
    """
    Stores profile images on the local filesystem.

    Files live in <root>/profiles and are referenced by their public path,
    e.g. /uploads/profiles/profile-1700000000000-123456.png, which the app
    serves as static content.
    """

    def __init__(self, root: str, max_bytes: int = 5 * 1024 * 1024, public_prefix: str = PUBLIC_PREFIX):
        self.root = Path(root)
        self.max_bytes = max_bytes
        self.public_prefix = public_prefix.rstrip("/")

    @property
    def profiles_dir(self) -> Path:
        return self.root / "profiles"

    async def save(self, upload: UploadFile) -> str:
        """
        Validate and write an uploaded image.

        Returns:
            Public path of the stored file

        Raises:
            AppHTTPException 400: not an image or larger than max_bytes
        """
        extension = os.path.splitext(upload.filename or "")[1].lower()
        content_type = (upload.content_type or "").lower()
        if extension not in ALLOWED_EXTENSIONS or not content_type.startswith("image/"):
            raise bad_request("Only image files are allowed.")

        content = await upload.read(self.max_bytes + 1)
        if len(content) > self.max_bytes:
            raise bad_request(f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB.")

        self.profiles_dir.mkdir(parents=True, exist_ok=True)
        filename = f"profile-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"
        (self.profiles_dir / filename).write_bytes(content)
        logger.info(f"Stored avatar {filename} ({len(content)} bytes)")
        return f"{self.public_prefix}/profiles/{filename}"

    def path_for(self, public_path: Optional[str]) -> Optional[Path]:
        """Map a stored public path back to a file under root; None for foreign paths."""
        if not public_path or not public_path.startswith(self.public_prefix + "/"):
            return None
        relative = public_path[len(self.public_prefix) + 1:]
        candidate = (self.root / relative).resolve()
        if self.root.resolve() not in candidate.parents:
            return None
        return candidate

    def delete(self, public_path: Optional[str]) -> bool:
        """Remove a stored avatar. A missing file is not an error."""
        path = self.path_for(public_path)
        if path is None:
            return False
        try:
            path.unlink()
            logger.info(f"Deleted avatar {public_path}")
            return True
        except FileNotFoundError:
            logger.warning(f"Avatar already missing: {public_path}")
            return False

    def discard(self, public_path: Optional[str]) -> None:
        """Cleanup for a file written by a request that then failed."""
        if public_path:
            self.delete(public_path)

    def resolve(self, public_path: Optional[str]) -> Optional[str]:
        """Public path if the file still exists, otherwise None."""
        path = self.path_for(public_path)
        if path is None or not path.is_file():
            return None
        return public_path

@lru_cache
def get_avatar_storage() -> AvatarStorage:
    """Dependency returning the avatar store configured from settings."""
    return AvatarStorage(settings.UPLOAD_DIR, max_bytes=settings.MAX_AVATAR_BYTES)
