"""Artifact storage for screenshot tiles and manifests.

Artifacts are written to a single screenshots directory that the API serves
statically under ``/screenshots/``. Public URLs are built from the job's
output base URL.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from crawlshot.crawl.models import Manifest

logger = logging.getLogger(__name__)

SCREENSHOTS_ROUTE = "screenshots"


def manifest_filename(job_id: str) -> str:
    return f"manifest-{job_id}.json"


class ArtifactStore:
    """Write crawl artifacts and map them to public URLs.

    Args:
        screenshots_dir: Directory that holds tiles and manifests
        public_base_url: Base URL under which ``/screenshots/`` is served

    Example:
        >>> store = ArtifactStore(Path("screenshots"), "http://localhost:3006")
        >>> store.public_url("home.png")
        'http://localhost:3006/screenshots/home.png'
    """

    def __init__(self, screenshots_dir: Path, public_base_url: str) -> None:
        self.screenshots_dir = Path(screenshots_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, filename: str) -> str:
        return f"{self.public_base_url}/{SCREENSHOTS_ROUTE}/{filename}"

    def save_tile(self, filename: str, data: bytes) -> str:
        """Write a PNG tile and return its public URL."""
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        path = self.screenshots_dir / filename
        path.write_bytes(data)
        logger.debug("Saved tile %s (%d bytes)", path, len(data))
        return self.public_url(filename)

    def manifest_path(self, job_id: str) -> Path:
        return self.screenshots_dir / manifest_filename(job_id)

    def manifest_url(self, job_id: str) -> str:
        return self.public_url(manifest_filename(job_id))

    def manifest_exists(self, job_id: str) -> bool:
        return self.manifest_path(job_id).is_file()

    def write_manifest(self, job_id: str, manifest: Manifest) -> Path:
        """Atomically write the manifest for a job.

        The JSON is written to a temporary file in the same directory and
        renamed into place, so readers never see a partial manifest.

        Args:
            job_id: Job identifier
            manifest: Manifest to persist

        Returns:
            Path of the written manifest
        """
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        path = self.manifest_path(job_id)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=self.screenshots_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(manifest.to_dict(), handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Saved manifest to %s", path)
        return path
