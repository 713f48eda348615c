"""
Import variants: PDF import, photo import and the unified document import.

All three share one pipeline; a variant only decides which files are
accepted, how large they may be, which prompts run, and how uploads and
created records are attributed.
"""
from dataclasses import dataclass

from app.core.config import settings
from app.domains.audit.models import AuditSource
from app.domains.imports.prompts import DOCUMENT_PROMPTS, IMAGE_PROMPTS, PDF_PROMPTS, PromptSet

PDF_MIME_TYPES = ("application/pdf",)
IMAGE_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


@dataclass(frozen=True)
class ImportVariant:
    name: str
    route_segment: str
    source: AuditSource
    storage_category: str
    allowed_mime_types: tuple[str, ...]
    max_size_setting: str
    prompts: PromptSet
    process_on_upload: bool = False

    @property
    def max_size_mb(self) -> int:
        return getattr(settings, self.max_size_setting)

    @property
    def max_size_bytes(self) -> int:
        return self.max_size_mb * 1024 * 1024


PDF_VARIANT = ImportVariant(
    name="pdf",
    route_segment="pdf-import",
    source=AuditSource.PDF_IMPORT,
    storage_category="pdfs",
    allowed_mime_types=PDF_MIME_TYPES,
    max_size_setting="PDF_MAX_SIZE_MB",
    prompts=PDF_PROMPTS,
)

IMAGE_VARIANT = ImportVariant(
    name="image",
    route_segment="photo-import",
    source=AuditSource.IMAGE_IMPORT,
    storage_category="images",
    allowed_mime_types=IMAGE_MIME_TYPES,
    max_size_setting="IMAGE_MAX_SIZE_MB",
    prompts=IMAGE_PROMPTS,
)

DOCUMENT_VARIANT = ImportVariant(
    name="document",
    route_segment="documents",
    source=AuditSource.DOCUMENT_IMPORT,
    storage_category="documents",
    allowed_mime_types=PDF_MIME_TYPES + IMAGE_MIME_TYPES,
    max_size_setting="DOCUMENT_MAX_SIZE_MB",
    prompts=DOCUMENT_PROMPTS,
    process_on_upload=True,
)

VARIANTS = (PDF_VARIANT, IMAGE_VARIANT, DOCUMENT_VARIANT)
