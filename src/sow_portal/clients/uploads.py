"""Document uploads to S3 through presigned URLs.

The flow has four steps, all driven from here:

1. Create the document template record (name, type, size, content type).
2. Ask the backend for a presigned PUT URL for that record.
3. PUT the bytes straight to S3, reporting progress as chunks go out.
4. Update the record with the S3 key the backend handed out.

``upload_document`` never raises; failures come back as
``UploadResult(success=False, error=...)``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import PurePath

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from src.sow_portal.clients.api import DEFAULT_CONTENT_TYPE, SowApiClient
from src.sow_portal.clients.errors import ApiError
from src.sow_portal.clients.schemas import DocumentTemplate, TemplateType

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 64 * 1024
UNEXPECTED_RESPONSE_ERROR = "Unexpected response from server"


class UploadError(Exception):
    """The presigned PUT was rejected or the backend returned no record id."""


class UploadProgress(BaseModel):
    loaded: int
    total: int
    percentage: int


class UploadResult(BaseModel):
    success: bool
    document_id: str = ""
    s3_key: str = ""
    file_name: str
    error: str | None = None


ProgressCallback = Callable[[UploadProgress], None]


def _progress(loaded: int, total: int) -> UploadProgress:
    percentage = round(loaded / total * 100) if total else 100
    return UploadProgress(loaded=loaded, total=total, percentage=percentage)


class DocumentUploader:
    """Uploads knowledge base documents and SOW templates.

    Args:
        api: Backend client used for the record and presigned URL calls.
        chunk_size: Bytes per progress step during the S3 PUT.
        transport: Custom httpx transport for the S3 PUT (tests).
    """

    def __init__(
        self,
        api: SowApiClient,
        *,
        chunk_size: int = CHUNK_SIZE,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api = api
        self._chunk_size = chunk_size
        self._timeout = timeout
        self._transport = transport

    async def _put_to_s3(
        self,
        url: str,
        content: bytes,
        content_type: str,
        on_progress: ProgressCallback | None,
    ) -> None:
        total = len(content)

        async def body() -> AsyncIterator[bytes]:
            loaded = 0
            for offset in range(0, total, self._chunk_size):
                chunk = content[offset:offset + self._chunk_size]
                loaded += len(chunk)
                yield chunk
                if on_progress is not None:
                    on_progress(_progress(loaded, total))

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.put(
                url,
                content=body(),
                headers={"Content-Type": content_type, "Content-Length": str(total)},
            )
        if not response.is_success:
            raise UploadError(f"Upload failed with status {response.status_code}")

    async def upload_document(
        self,
        filename: str,
        content: bytes,
        type: TemplateType,
        name: str | None = None,
        description: str | None = None,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Create the record, upload the bytes, and attach the S3 key.

        Args:
            filename: Original file name, sent to S3 and stored on the record.
            content: File bytes.
            type: KNOWLEDGE_BASE or SOW_TEMPLATE.
            name: Display name; defaults to the file name without extension.
            description: Optional description stored on the record.
            content_type: MIME type; defaults to application/octet-stream.
            on_progress: Called with loaded/total/percentage as bytes go out.

        Returns:
            UploadResult with the new document id and S3 key, or the error.
        """
        mime = content_type or DEFAULT_CONTENT_TYPE
        document_name = name or PurePath(filename).stem or filename

        if on_progress is not None:
            on_progress(_progress(0, len(content)))

        try:
            created = await self._api.create_document_template(
                DocumentTemplate(
                    name=document_name,
                    description=description or "",
                    type=type,
                    filename=filename,
                    file_size=len(content),
                    content_type=mime,
                )
            )
            if not created.id:
                raise UploadError("Failed to create document record")

            upload_url = await self._api.get_document_upload_url(created.id, filename, mime)
            await self._put_to_s3(upload_url.upload_url, content, mime, on_progress)
            await self._api.update_document_template(
                created.id,
                {"name": document_name, "s3Key": upload_url.s3_key},
            )
        except (ApiError, UploadError, httpx.HTTPError) as exc:
            message = str(exc) or "Upload failed"
            logger.error("upload.failed", filename=filename, type=type.value, error=message)
            return UploadResult(success=False, file_name=filename, error=message)
        except ValidationError as exc:
            logger.error(
                "upload.unexpected_response",
                filename=filename,
                type=type.value,
                error=str(exc),
            )
            return UploadResult(success=False, file_name=filename, error=UNEXPECTED_RESPONSE_ERROR)

        logger.info(
            "upload.completed",
            filename=filename,
            document_id=created.id,
            s3_key=upload_url.s3_key,
        )
        return UploadResult(
            success=True,
            document_id=created.id,
            s3_key=upload_url.s3_key,
            file_name=filename,
        )
