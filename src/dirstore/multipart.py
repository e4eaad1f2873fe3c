"""Multipart upload sessions on disk.

Each in-progress upload owns one directory,
``{tmp_dir}/multiparts/s3o_{upload_id}``, holding a ``session.json``
descriptor and one file per uploaded part. The directory lives outside the
bucket/key tree and is removed in full on completion or abort.
"""

import hashlib
import json
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)

SESSION_PREFIX = "s3o_"
_SESSION_FILE = "session.json"
_PART_PREFIX = "part."
_CHUNK_SIZE = 64 * 1024

# Upload ids are generated as uuid4 hex; anything outside this alphabet could
# escape the multiparts directory and is treated as unknown.
_UPLOAD_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class MultipartSessionManager:
    """Creates, fills and tears down multipart session directories.

    Attributes:
        tmp_dir: Working directory under which ``multiparts/`` lives.
    """

    def __init__(self, tmp_dir: str | Path) -> None:
        self.tmp_dir = Path(tmp_dir)

    @property
    def base_dir(self) -> Path:
        return self.tmp_dir / "multiparts"

    def session_dir(self, upload_id: str) -> Path:
        """Return ``{tmp_dir}/multiparts/s3o_{upload_id}``."""
        return self.base_dir / f"{SESSION_PREFIX}{upload_id}"

    def is_valid_id(self, upload_id: str) -> bool:
        return bool(_UPLOAD_ID_RE.match(upload_id))

    def exists(self, upload_id: str) -> bool:
        return self.is_valid_id(upload_id) and self.session_dir(upload_id).is_dir()

    def create(self, uri: str, content_type: str) -> str:
        """Open a new session for ``uri`` and return its upload id."""
        upload_id = uuid.uuid4().hex
        session = self.session_dir(upload_id)
        session.mkdir(parents=True)
        (session / _SESSION_FILE).write_text(
            json.dumps({"uri": uri, "content_type": content_type})
        )
        logger.info("Initiated multipart upload %s for %s", upload_id, uri)
        return upload_id

    def read_session(self, upload_id: str) -> dict[str, Any] | None:
        """Return the session descriptor, or None if the session is unknown."""
        if not self.exists(upload_id):
            return None
        try:
            return json.loads((self.session_dir(upload_id) / _SESSION_FILE).read_text())
        except FileNotFoundError:
            return None

    def write_part(self, upload_id: str, part_number: int, stream: BinaryIO) -> str:
        """Store one part, replacing any earlier upload of the same number.

        Returns:
            The hex MD5 of the part.
        """
        path = self.session_dir(upload_id) / f"{_PART_PREFIX}{part_number}"
        tmp = path.with_name(f"{path.name}.tmp.{uuid.uuid4().hex[:8]}")
        md5 = hashlib.md5()
        try:
            with open(tmp, "wb") as f:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    f.write(chunk)
                    md5.update(chunk)
                f.flush()
                os.fsync(f.fileno())
            tmp.rename(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        return md5.hexdigest()

    def parts(self, upload_id: str) -> dict[int, Path]:
        """Map part number to part file for every stored part."""
        found: dict[int, Path] = {}
        for child in self.session_dir(upload_id).iterdir():
            suffix = child.name[len(_PART_PREFIX) :]
            if child.name.startswith(_PART_PREFIX) and suffix.isdigit():
                found[int(suffix)] = child
        return found

    @staticmethod
    def part_md5(path: Path) -> str:
        md5 = hashlib.md5()
        with open(path, "rb") as f:
            while True:
                chunk = f.read(_CHUNK_SIZE)
                if not chunk:
                    break
                md5.update(chunk)
        return md5.hexdigest()

    def teardown(self, upload_id: str) -> bool:
        """Delete a session directory and everything below it.

        A missing session is not an error.

        Returns:
            True if a directory was removed.
        """
        if not self.is_valid_id(upload_id):
            logger.warning("Ignoring teardown of malformed upload id %r", upload_id)
            return False
        session = self.session_dir(upload_id)
        if not session.is_dir():
            return False
        try:
            shutil.rmtree(session)
        except FileNotFoundError:
            # A concurrent abort of the same upload got there first
            return False
        logger.info("Removed multipart session %s", upload_id)
        return True
