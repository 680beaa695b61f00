"""Async client for the SOW backend REST API.

SowApiClient wraps one httpx.AsyncClient and adds the behavior every
dashboard call relies on:

- ``Authorization: Bearer <id token>`` from a TokenProvider.
- On 401 the provider is asked to refresh once and the request is reissued;
  if no fresh token is available the auth-failure hook runs (sign-out) and
  AuthenticationError is raised.
- Connect/timeout failures and 5xx responses get one automatic retry
  (tenacity). 4xx responses are never retried.
- Non-2xx responses raise an ApiError subclass with the backend's message.

Endpoint methods return pydantic models from ``clients.schemas`` and
``deals.schemas``.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from src.sow_portal.clients.errors import AuthenticationError, NetworkError, error_from_response
from src.sow_portal.clients.schemas import (
    AvomaMeeting,
    ChatResponse,
    CognitoUser,
    CreateNotificationRequest,
    CreateUserRequest,
    DealTemplate,
    DocumentTemplate,
    DocumentUploadUrl,
    ExecutionStatus,
    FinalizeResult,
    GenerateDiagramRequest,
    GenerateSOWRequest,
    GenerateTCORequest,
    GenerateTCOResponse,
    GenerationStarted,
    NotificationsPage,
    PresignedDownload,
    PresignedUpload,
    StoredFile,
    SyncAvomaResult,
    TemplateType,
)
from src.sow_portal.config import Settings
from src.sow_portal.core.monitoring import record_backend_call
from src.sow_portal.deals.progress import DealStatus, SowGenProgress
from src.sow_portal.deals.schemas import (
    Deal,
    DealAssignment,
    DealListFilter,
    DealMetadata,
    DealOwner,
    DealPage,
)

logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


# ── Token Providers ─────────────────────────────────────────────────────────


class TokenProvider(Protocol):
    """Source of the Cognito ID token attached to backend requests."""

    async def get_token(self) -> str | None: ...

    async def refresh(self) -> str | None: ...


class StaticTokenProvider:
    """Forwards a fixed token, e.g. the caller's bearer token in the BFF.

    It cannot refresh; a 401 therefore ends in AuthenticationError.
    """

    def __init__(self, token: str | None) -> None:
        self._token = token

    async def get_token(self) -> str | None:
        return self._token

    async def refresh(self) -> str | None:
        return None


class _ServerErrorResponse(Exception):
    """Internal marker so tenacity can retry 5xx responses."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _outcome_for(status_code: int) -> str:
    if status_code < 400:
        return "success"
    if status_code < 500:
        return "client_error"
    return "server_error"


def _segment(value: str) -> str:
    return quote(value, safe="")


# ── Client ──────────────────────────────────────────────────────────────────


class SowApiClient:
    """Async client for the SOW backend.

    Args:
        base_url: Backend root, e.g. ``https://api.example.com/prod``.
        token_provider: Supplies and refreshes the bearer token. Optional.
        timeout: Per-request timeout in seconds.
        max_retries: Automatic retries for transport errors and 5xx.
        retry_wait: Seconds between attempts.
        on_auth_failure: Awaited when a 401 cannot be recovered by refresh.
        transport: Custom httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        *,
        timeout: float = 30.0,
        max_retries: int = 1,
        retry_wait: float = 0.5,
        on_auth_failure: Callable[[], Awaitable[None]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._max_retries = max(0, max_retries)
        self._retry_wait = retry_wait
        self._on_auth_failure = on_auth_failure
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token_provider: TokenProvider | None = None,
        **kwargs: Any,
    ) -> SowApiClient:
        return cls(
            settings.API_BASE_URL,
            token_provider,
            timeout=settings.API_TIMEOUT,
            max_retries=settings.API_MAX_RETRIES,
            retry_wait=settings.API_RETRY_WAIT,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SowApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ── Transport ───────────────────────────────────────────────────────────

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json: Any,
        token: str | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return await self._client.request(method, path, params=params, json=json, headers=headers)

    async def _refresh_token(self) -> str | None:
        if self._token_provider is None:
            return None
        try:
            return await self._token_provider.refresh()
        except Exception:
            logger.exception("api.token_refresh_failed")
            return None

    async def _send_authenticated(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json: Any,
    ) -> httpx.Response:
        token = await self._token_provider.get_token() if self._token_provider else None
        response = await self._send(method, path, params, json, token)
        if response.status_code != 401:
            return response

        logger.warning("api.unauthorized", method=method, path=path)
        fresh_token = await self._refresh_token()
        if not fresh_token:
            if self._on_auth_failure is not None:
                await self._on_auth_failure()
            raise AuthenticationError(
                "Unauthorized - please log in again",
                status_code=401,
                code="401",
            )
        return await self._send(method, path, params, json, fresh_token)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            AuthenticationError: 401 that could not be recovered.
            NotFoundError: 404.
            NetworkError: No response after the automatic retry.
            ApiError: Any other non-2xx response.
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        start = time.perf_counter()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_retries + 1),
                wait=wait_fixed(self._retry_wait),
                retry=retry_if_exception_type((httpx.TransportError, _ServerErrorResponse)),
                reraise=True,
            ):
                with attempt:
                    response = await self._send_authenticated(method, path, params, json)
                    if response.status_code >= 500:
                        raise _ServerErrorResponse(response)
        except _ServerErrorResponse as exc:
            response = exc.response
        except httpx.TransportError as exc:
            record_backend_call(method, "network_error", time.perf_counter() - start)
            logger.error("api.network_error", method=method, path=path, error=str(exc))
            raise NetworkError(
                "Network error - please check your connection",
                code="FETCH_ERROR",
            ) from exc
        except AuthenticationError:
            record_backend_call(method, "client_error", time.perf_counter() - start)
            raise

        record_backend_call(method, _outcome_for(response.status_code), time.perf_counter() - start)

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        error = error_from_response(response)
        logger.warning(
            "api.request_failed",
            method=method,
            path=path,
            status_code=response.status_code,
            error=error.message,
        )
        raise error

    # ── Deals ───────────────────────────────────────────────────────────────

    async def list_deals(self, filters: DealListFilter | None = None) -> DealPage:
        filters = filters or DealListFilter()
        data = await self.request("GET", "/deals", params=filters.to_params())
        return DealPage.model_validate(data or {})

    async def search_deals(
        self,
        query: str,
        limit: int = 20,
        company_id: str | None = None,
    ) -> DealPage:
        return await self.list_deals(DealListFilter(q=query, limit=limit, company_id=company_id))

    async def get_deal(self, deal_id: str) -> Deal:
        data = await self.request("GET", f"/deals/{_segment(deal_id)}")
        return Deal.model_validate(data)

    async def get_deal_owners(self) -> list[DealOwner]:
        data = await self.request("GET", "/deals/owners") or {}
        return [DealOwner.model_validate(o) for o in data.get("owners", [])]

    async def get_deal_assignments(self) -> dict[str, DealAssignment]:
        data = await self.request("GET", "/deals/assignments") or {}
        return {
            deal_id: DealAssignment.model_validate(assignment)
            for deal_id, assignment in data.get("assignments", {}).items()
        }

    async def assign_deal(
        self,
        deal_id: str,
        assignee_id: str,
        assignee_name: str,
        deal_name: str | None = None,
    ) -> dict[str, Any]:
        body = {
            "assignee_id": assignee_id,
            "assignee_name": assignee_name,
            "deal_name": deal_name,
        }
        data = await self.request("PUT", f"/deals/{_segment(deal_id)}/assignment", json=body)
        logger.info("api.deal_assigned", deal_id=deal_id, assignee_id=assignee_id)
        return data or {}

    async def unassign_deal(self, deal_id: str) -> dict[str, Any]:
        data = await self.request("DELETE", f"/deals/{_segment(deal_id)}/assignment")
        logger.info("api.deal_unassigned", deal_id=deal_id)
        return data or {}

    # ── Deal Metadata ───────────────────────────────────────────────────────

    async def get_deal_metadata(self, deal_id: str) -> DealMetadata:
        data = await self.request("GET", f"/deals-metadata/{_segment(deal_id)}") or {}
        return DealMetadata.model_validate({"deal_id": deal_id, **data})

    async def update_deal_phase(self, deal_id: str, status: DealStatus | str) -> dict[str, Any]:
        value = status.value if isinstance(status, DealStatus) else status
        data = await self.request(
            "PUT",
            f"/deals-metadata/{_segment(deal_id)}/status",
            json={"status": value},
        )
        logger.info("api.deal_status_updated", deal_id=deal_id, status=value)
        return data or {}

    async def update_sow_gen_progress(
        self,
        deal_id: str,
        progress: SowGenProgress | str,
    ) -> dict[str, Any]:
        value = progress.value if isinstance(progress, SowGenProgress) else progress
        data = await self.request(
            "PUT",
            f"/deals-metadata/{_segment(deal_id)}/sow-gen-progress",
            json={"progress": value},
        )
        logger.info("api.sow_gen_progress_updated", deal_id=deal_id, progress=value)
        return data or {}

    # ── Generation ──────────────────────────────────────────────────────────

    async def generate_sow(self, request: GenerateSOWRequest) -> GenerationStarted:
        data = await self.request("POST", "/generate-sow", json=request.to_body())
        started = GenerationStarted.model_validate(data or {})
        logger.info(
            "api.sow_generation_started",
            deal_id=request.deal_id,
            execution_arn=started.execution_arn,
        )
        return started

    async def get_execution_status(self, execution_arn: str) -> ExecutionStatus:
        data = await self.request("GET", f"/execution-status/{_segment(execution_arn)}")
        return ExecutionStatus.model_validate(data)

    async def generate_diagram(self, request: GenerateDiagramRequest) -> GenerationStarted:
        data = await self.request(
            "POST",
            "/diagrams/generate",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return GenerationStarted.model_validate(data or {})

    async def generate_tco(self, request: GenerateTCORequest) -> GenerateTCOResponse:
        data = await self.request(
            "POST",
            "/pricing-estimate",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        return GenerateTCOResponse.model_validate(data or {})

    async def _finalize(self, company_id: str, deal_id: str, artifact: str) -> FinalizeResult:
        data = await self.request(
            "POST",
            f"/files/{_segment(company_id)}/{_segment(deal_id)}/finalize-{artifact}",
        )
        result = FinalizeResult.model_validate(data or {})
        logger.info(
            "api.artifact_finalized",
            deal_id=deal_id,
            artifact=artifact,
            finalized=result.finalized,
        )
        return result

    async def finalize_sow(self, company_id: str, deal_id: str) -> FinalizeResult:
        return await self._finalize(company_id, deal_id, "sow")

    async def finalize_architecture(self, company_id: str, deal_id: str) -> FinalizeResult:
        return await self._finalize(company_id, deal_id, "architecture")

    async def finalize_tco(self, company_id: str, deal_id: str) -> FinalizeResult:
        return await self._finalize(company_id, deal_id, "tco")

    # ── Files ───────────────────────────────────────────────────────────────

    async def list_files(self, company_id: str, deal_id: str) -> list[StoredFile]:
        data = await self.request("GET", f"/files/{_segment(company_id)}/{_segment(deal_id)}")
        items = data.get("files", []) if isinstance(data, dict) else (data or [])
        return [StoredFile.model_validate(item) for item in items]

    async def get_file_download_url(
        self,
        company_id: str,
        deal_id: str,
        filename: str,
        file_type: str | None = None,
    ) -> PresignedDownload:
        data = await self.request(
            "GET",
            f"/files/{_segment(company_id)}/{_segment(deal_id)}/{_segment(filename)}",
            params={"type": file_type},
        )
        return PresignedDownload.model_validate(data)

    async def get_file_upload_url(
        self,
        company_id: str,
        deal_id: str,
        filename: str,
        content_type: str | None = None,
    ) -> PresignedUpload:
        normalized = content_type if content_type and content_type.strip() else DEFAULT_CONTENT_TYPE
        data = await self.request(
            "POST",
            f"/files/{_segment(company_id)}/{_segment(deal_id)}/{_segment(filename)}",
            params={"content_type": normalized},
        )
        return PresignedUpload.model_validate(data)

    async def delete_file(self, company_id: str, deal_id: str, filename: str) -> dict[str, Any]:
        data = await self.request(
            "DELETE",
            f"/files/{_segment(company_id)}/{_segment(deal_id)}/{_segment(filename)}",
        )
        return data or {}

    # ── Document Templates ──────────────────────────────────────────────────

    async def list_document_templates(
        self,
        type: TemplateType | None = None,
        search: str | None = None,
    ) -> list[DocumentTemplate]:
        params = {
            "type": type.value if type else None,
            "search": search or None,
        }
        data = await self.request("GET", "/document-templates", params=params) or []
        return [DocumentTemplate.model_validate(t) for t in data]

    async def get_document_template(self, template_id: str) -> DocumentTemplate:
        data = await self.request("GET", f"/document-templates/{_segment(template_id)}")
        return DocumentTemplate.model_validate(data)

    async def create_document_template(self, template: DocumentTemplate) -> DocumentTemplate:
        data = await self.request(
            "POST",
            "/document-templates",
            json=template.model_dump(by_alias=True, exclude_none=True, mode="json"),
        )
        return DocumentTemplate.model_validate(data)

    async def update_document_template(
        self,
        template_id: str,
        changes: dict[str, Any],
    ) -> DocumentTemplate:
        data = await self.request(
            "PUT",
            f"/document-templates/{_segment(template_id)}",
            json=changes,
        )
        return DocumentTemplate.model_validate(data)

    async def delete_document_template(self, template_id: str) -> None:
        await self.request("DELETE", f"/document-templates/{_segment(template_id)}")

    async def get_document_upload_url(
        self,
        template_id: str,
        filename: str,
        content_type: str | None = None,
    ) -> DocumentUploadUrl:
        data = await self.request(
            "POST",
            f"/document-templates/{_segment(template_id)}/upload-url",
            json={"filename": filename, "contentType": content_type or DEFAULT_CONTENT_TYPE},
        )
        return DocumentUploadUrl.model_validate(data)

    async def get_deal_template(self, deal_id: str) -> DealTemplate:
        data = await self.request("GET", f"/deals/{_segment(deal_id)}/template")
        return DealTemplate.model_validate(data)

    async def assign_deal_template(
        self,
        deal_id: str,
        template_id: str,
        additional_instructions: str | None = None,
        capacity_info: str | None = None,
    ) -> DealTemplate:
        data = await self.request(
            "PUT",
            f"/deals/{_segment(deal_id)}/template",
            json={
                "template_id": template_id,
                "additional_instructions": additional_instructions,
                "capacity_info": capacity_info,
            },
        )
        return DealTemplate.model_validate(data)

    async def remove_deal_template(self, deal_id: str) -> None:
        await self.request("DELETE", f"/deals/{_segment(deal_id)}/template")

    # ── Meetings ────────────────────────────────────────────────────────────

    async def sync_avoma_meetings(self, deal_id: str, company_id: str) -> SyncAvomaResult:
        data = await self.request(
            "POST",
            f"/deals/{_segment(deal_id)}/sync-avoma-meetings",
            json={"company_id": company_id},
        ) or {}
        synced = data.get("synced_meetings", data.get("meetings_synced", 0))
        return SyncAvomaResult(
            success=not data.get("failed_meetings"),
            meetings_synced=synced,
            message=data.get("message", ""),
        )

    async def get_avoma_meetings(self, deal_id: str, company_id: str) -> list[AvomaMeeting]:
        data = await self.request(
            "GET",
            f"/deals/{_segment(deal_id)}/avoma-meetings",
            params={"company_id": company_id},
        ) or {}
        return [AvomaMeeting.model_validate(m) for m in data.get("meetings", [])]

    async def update_meeting_selection(
        self,
        deal_id: str,
        company_id: str,
        selected_meeting_ids: list[str],
    ) -> dict[str, Any]:
        data = await self.request(
            "PUT",
            f"/deals/{_segment(deal_id)}/avoma-meetings/selection",
            json={"company_id": company_id, "selected_meeting_ids": selected_meeting_ids},
        )
        return data or {}

    # ── Users ───────────────────────────────────────────────────────────────

    async def list_users(
        self,
        roles: list[str] | None = None,
        enabled: bool | None = None,
    ) -> list[CognitoUser]:
        params = {
            "roles": ",".join(roles) if roles else None,
            "enabled": None if enabled is None else str(enabled).lower(),
        }
        data = await self.request("GET", "/users", params=params) or []
        return [CognitoUser.model_validate(u) for u in data]

    async def create_user(self, request: CreateUserRequest) -> CognitoUser:
        data = await self.request("POST", "/users", json=request.model_dump(exclude_none=True))
        logger.info("api.user_created", email=request.email)
        return CognitoUser.model_validate(data)

    async def delete_user(self, user_id: str) -> None:
        await self.request("DELETE", f"/users/{_segment(user_id)}")
        logger.info("api.user_deleted", user_id=user_id)

    async def update_user_groups(self, user_id: str, groups: list[str]) -> CognitoUser:
        data = await self.request("PUT", f"/users/{_segment(user_id)}/groups", json={"groups": groups})
        return CognitoUser.model_validate(data)

    async def activate_user(self, user_id: str) -> CognitoUser:
        data = await self.request("PUT", f"/users/{_segment(user_id)}/activate")
        return CognitoUser.model_validate(data)

    async def deactivate_user(self, user_id: str) -> CognitoUser:
        data = await self.request("PUT", f"/users/{_segment(user_id)}/deactivate")
        return CognitoUser.model_validate(data)

    # ── Notifications ───────────────────────────────────────────────────────

    async def get_notifications(
        self,
        limit: int = 20,
        unread_only: bool = False,
        search: str | None = None,
        type: str | None = None,
        date_filter: str | None = None,
    ) -> NotificationsPage:
        params = {
            "limit": limit or 20,
            "unread_only": "true" if unread_only else None,
            "search": search or None,
            "type": type or None,
            "date_filter": date_filter or None,
        }
        data = await self.request("GET", "/notifications", params=params)
        return NotificationsPage.model_validate(data or {})

    async def get_unread_count(self) -> int:
        data = await self.request("GET", "/notifications/unread-count") or {}
        return int(data.get("unread_count", 0))

    async def mark_notification_read(self, notification_id: str) -> dict[str, Any]:
        data = await self.request("PUT", f"/notifications/{_segment(notification_id)}/read")
        return data or {}

    async def mark_all_notifications_read(self) -> dict[str, Any]:
        data = await self.request("PUT", "/notifications/mark-all-read")
        return data or {}

    async def mark_visible_notifications_viewed(self, notification_ids: list[str]) -> dict[str, Any]:
        data = await self.request(
            "POST",
            "/notifications/mark-visible-read",
            json={"notification_ids": notification_ids},
        )
        return data or {}

    async def create_notification(self, request: CreateNotificationRequest) -> dict[str, Any]:
        data = await self.request(
            "POST",
            "/notifications",
            json=request.model_dump(exclude_none=True, mode="json"),
        )
        logger.info("api.notification_created", type=request.type.value, deal_id=request.deal_id)
        return data or {}

    # ── Chat ────────────────────────────────────────────────────────────────

    async def send_chat_message(self, message: str, session_id: str | None = None) -> ChatResponse:
        body: dict[str, Any] = {"message": message}
        if session_id:
            body["sessionId"] = session_id
        data = await self.request("POST", "/chat", json=body)
        return ChatResponse.model_validate(data)
