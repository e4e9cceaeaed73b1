"""
manageRTC Payroll - Payslip Storage

Local file storage for rendered payslips. Files land under the configured
payslip directory and are served from the configured URL prefix.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class StoredArtifact:
    """Where a written payslip lives on disk and how it is addressed."""
    filename: str
    path: str
    url: str
    size: int


class LocalArtifactStorage:
    """Writes payslip PDFs to local disk, creating the directory on demand."""

    def __init__(self, base_path: Optional[str] = None, url_prefix: Optional[str] = None):
        self.base_path = Path(base_path or settings.payslip_storage_path)
        self.url_prefix = (url_prefix or settings.payslip_url_prefix).rstrip("/")

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    async def write(self, filename: str, content: bytes) -> StoredArtifact:
        if Path(filename).name != filename:
            raise ValueError(f"Invalid payslip filename: {filename}")

        self.base_path.mkdir(parents=True, exist_ok=True)
        file_path = self.base_path / filename
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

        logger.info(f"Payslip written: {file_path} ({len(content)} bytes)")
        return StoredArtifact(
            filename=filename,
            path=str(file_path),
            url=self.url_for(filename),
            size=len(content),
        )
