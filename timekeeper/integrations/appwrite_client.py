"""
Async Appwrite REST client with retry logic and error mapping.
"""
import logging
import asyncio
from typing import Dict, Any, List, Optional
import httpx
from timekeeper.utils.http import create_http_client
from timekeeper.integrations.appwrite_types import (
    AppwriteUser,
    Document,
    DocumentList,
    MembershipList,
)
from timekeeper.config import settings

logger = logging.getLogger(__name__)


class BackendAPIError(Exception):
    """Base exception for Appwrite API errors."""
    def __init__(self, code: str, message: str, status_code: int = 500):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.code in ("rate_limited", "upstream_error")


class AppwriteClient:
    """Async client for the Users, Databases and Teams services of Appwrite."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
        database_id: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
    ):
        self.endpoint = (endpoint or settings.APPWRITE_ENDPOINT).rstrip("/")
        self.project_id = project_id or settings.APPWRITE_PROJECT_ID
        self.api_key = api_key or settings.APPWRITE_API_KEY
        self.database_id = database_id or settings.APPWRITE_DATABASE_ID
        self.timeout = timeout
        self.max_retries = max_retries

        if not self.project_id or not self.api_key:
            raise ValueError("APPWRITE_PROJECT_ID and APPWRITE_API_KEY must be set")

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Key": self.api_key,
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """
        Make HTTP request with retry logic.
        Maps errors to BackendAPIError with appropriate codes.
        """
        url = f"{self.endpoint}{path}"
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"

        last_exception = None
        for attempt in range(self.max_retries):
            try:
                async with create_http_client(timeout=self.timeout) as client:
                    response = await client.request(
                        method.upper(),
                        url,
                        headers=headers,
                        params=params,
                        json=json_body,
                    )

                    if response.status_code == 429:
                        delay = (2 ** attempt) * 0.5
                        logger.warning(
                            f"Appwrite rate limit hit, retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                        )
                        if attempt < self.max_retries - 1:
                            await asyncio.sleep(delay)
                            continue
                        raise BackendAPIError(
                            "rate_limited",
                            "Appwrite API rate limit exceeded",
                            429,
                        )

                    if response.status_code >= 500:
                        delay = (2 ** attempt) * 0.5
                        logger.warning(
                            f"Appwrite server error {response.status_code}, retrying in {delay}s"
                        )
                        if attempt < self.max_retries - 1:
                            await asyncio.sleep(delay)
                            continue
                        raise BackendAPIError(
                            "upstream_error",
                            f"Appwrite server error: {response.status_code}",
                            response.status_code,
                        )

                    if response.status_code == 401:
                        raise BackendAPIError(
                            "unauthorized",
                            "Invalid Appwrite API key or project",
                            401,
                        )

                    if response.status_code == 403:
                        raise BackendAPIError(
                            "forbidden",
                            "API key lacks the scope for this operation",
                            403,
                        )

                    if response.status_code == 404:
                        raise BackendAPIError(
                            "not_found",
                            "Resource not found",
                            404,
                        )

                    if response.status_code == 409:
                        raise BackendAPIError(
                            "conflict",
                            "Document already exists",
                            409,
                        )

                    if response.status_code >= 400:
                        try:
                            error_data = response.json()
                        except ValueError:
                            error_data = {"message": response.text}
                        raise BackendAPIError(
                            "validation_error",
                            f"Bad request: {error_data.get('message', 'Unknown error')}",
                            response.status_code,
                        )

                    if response.status_code == 204 or not response.content:
                        return None

                    return response.json()

            except BackendAPIError:
                raise
            except httpx.TimeoutException as e:
                last_exception = e
                logger.warning(
                    f"Appwrite timeout on attempt {attempt + 1}/{self.max_retries}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep((2 ** attempt) * 0.5)
                    continue
            except httpx.HTTPError as e:
                last_exception = e
                logger.error(f"Appwrite API call failed: {e}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep((2 ** attempt) * 0.5)
                    continue

        raise BackendAPIError(
            "upstream_error",
            f"Request failed after {self.max_retries} attempts",
            500,
        ) from last_exception

    def _documents_path(self, collection_id: str, document_id: Optional[str] = None) -> str:
        path = f"/databases/{self.database_id}/collections/{collection_id}/documents"
        return f"{path}/{document_id}" if document_id else path

    async def get_user(self, user_id: str) -> AppwriteUser:
        """Get an account, including its labels."""
        data = await self._request("GET", f"/users/{user_id}")
        return AppwriteUser(**data)

    async def list_documents(self, collection_id: str, queries: Optional[List[str]] = None) -> DocumentList:
        params = {"queries[]": queries} if queries else None
        data = await self._request("GET", self._documents_path(collection_id), params=params)
        return DocumentList(**data)

    async def get_document(self, collection_id: str, document_id: str) -> Document:
        data = await self._request("GET", self._documents_path(collection_id, document_id))
        return Document(**data)

    async def create_document(
        self,
        collection_id: str,
        document_id: str,
        data: Dict[str, Any],
        permissions: Optional[List[str]] = None,
    ) -> Document:
        body: Dict[str, Any] = {"documentId": document_id, "data": data}
        if permissions is not None:
            body["permissions"] = permissions
        result = await self._request("POST", self._documents_path(collection_id), json_body=body)
        return Document(**result)

    async def update_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Document:
        result = await self._request(
            "PATCH",
            self._documents_path(collection_id, document_id),
            json_body={"data": data},
        )
        return Document(**result)

    async def delete_document(self, collection_id: str, document_id: str) -> None:
        await self._request("DELETE", self._documents_path(collection_id, document_id))

    async def list_memberships(self, team_id: str) -> MembershipList:
        data = await self._request("GET", f"/teams/{team_id}/memberships")
        return MembershipList(**data)
