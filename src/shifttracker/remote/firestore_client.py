"""Minimal Firestore REST client for room documents."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests

from ..errors import TransportError
from .codec import decode_fields, encode_fields

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_AUTH_URL = "https://identitytoolkit.googleapis.com/v1"


@dataclass(frozen=True)
class RemoteDocument:
    """A fetched document: decoded fields plus the server's update time."""

    doc_id: str
    data: Dict[str, Any]
    update_time: str = ""


class FirestoreClient:
    """Simple Firestore document client with anonymous sign-in."""

    def __init__(
        self,
        project_id: str,
        api_key: str,
        collection: str = "rooms",
        base_url: str = DEFAULT_BASE_URL,
        auth_url: str = DEFAULT_AUTH_URL,
        timeout: float = 30,
    ) -> None:
        """Initialize Firestore client.

        Args:
            project_id: Firebase project ID
            api_key: Web API key used for anonymous sign-in
            collection: Collection holding room documents
            base_url: Firestore REST base URL
            auth_url: Identity Toolkit base URL
            timeout: Request timeout in seconds
        """
        self.project_id = project_id
        self.api_key = api_key
        self.collection = collection
        self.base_url = base_url.rstrip("/")
        self.auth_url = auth_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self._id_token: Optional[str] = None
        self._token_lock = threading.Lock()

    @property
    def database_path(self) -> str:
        return f"projects/{self.project_id}/databases/(default)/documents"

    def document_name(self, doc_id: str) -> str:
        return f"{self.database_path}/{self.collection}/{doc_id}"

    def sign_in_anonymously(self, force: bool = False) -> str:
        """Obtain (and cache) an anonymous identity token.

        Args:
            force: Discard any cached token first

        Returns:
            ID token for the Authorization header

        Raises:
            TransportError: If sign-in fails
        """
        with self._token_lock:
            if self._id_token and not force:
                return self._id_token

            url = f"{self.auth_url}/accounts:signUp"
            try:
                response = self.session.post(
                    url,
                    params={"key": self.api_key},
                    json={"returnSecureToken": True},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                token = response.json()["idToken"]
            except (requests.RequestException, KeyError, ValueError) as e:
                status = getattr(getattr(e, "response", None), "status_code", None)
                logger.error(f"Anonymous sign-in failed: {e}")
                raise TransportError(f"Anonymous sign-in failed: {e}", status) from e

            self._id_token = token
            logger.debug("Signed in anonymously")
            return token

    def _make_request(
        self,
        method: str,
        url: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Optional[requests.Response]:
        """Make authenticated request to Firestore.

        A 401 triggers one fresh anonymous sign-in and a retry.

        Args:
            method: HTTP method
            url: Absolute URL
            allow_not_found: Return None instead of raising on 404
            **kwargs: Additional request arguments

        Returns:
            Response object, or None for an allowed 404

        Raises:
            TransportError: On connection failure or an error status
        """
        response: Optional[requests.Response] = None
        for attempt in range(2):
            headers = {
                "Authorization": f"Bearer {self.sign_in_anonymously(force=attempt > 0)}",
                "Content-Type": "application/json",
            }
            try:
                response = self.session.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
            except requests.RequestException as e:
                logger.error(f"Firestore request failed: {e}")
                raise TransportError(f"Firestore request failed: {e}") from e

            if response.status_code != 401:
                break
            logger.debug("Identity token rejected, signing in again")

        assert response is not None
        if allow_not_found and response.status_code == 404:
            return None

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.error(f"Firestore request failed: {e}")
            logger.error(f"  Response: {response.text}")
            raise TransportError(
                f"Firestore request failed: {e}", response.status_code
            ) from e
        return response

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Firestore returned a non-JSON body: {e}", response.status_code) from e
        if not isinstance(payload, dict):
            raise TransportError("Firestore returned an unexpected body", response.status_code)
        return payload

    def get_document(self, doc_id: str) -> Optional[RemoteDocument]:
        """Get a document by ID.

        Returns:
            Document, or None if it does not exist
        """
        url = f"{self.base_url}/{self.document_name(doc_id)}"
        response = self._make_request("GET", url, allow_not_found=True)
        if response is None:
            return None
        payload = self._json(response)
        return RemoteDocument(
            doc_id=doc_id,
            data=decode_fields(payload.get("fields", {})),
            update_time=payload.get("updateTime", ""),
        )

    def upsert_document(
        self,
        doc_id: str,
        fields: Dict[str, Any],
        server_timestamp_fields: Iterable[str] = (),
    ) -> str:
        """Create or merge-update a document.

        Only the given top-level fields are written; other fields of an
        existing document are left as they are.

        Args:
            doc_id: Document ID
            fields: Top-level fields to write
            server_timestamp_fields: Fields set to the server's request time

        Returns:
            Server commit time
        """
        write: Dict[str, Any] = {
            "update": {"name": self.document_name(doc_id), "fields": encode_fields(fields)},
            "updateMask": {"fieldPaths": sorted(fields)},
        }
        transforms = [
            {"fieldPath": name, "setToServerValue": "REQUEST_TIME"}
            for name in server_timestamp_fields
        ]
        if transforms:
            write["updateTransforms"] = transforms

        url = f"{self.base_url}/{self.database_path}:commit"
        logger.debug(f"Upserting document {doc_id} fields={sorted(fields)}")
        response = self._make_request("POST", url, json={"writes": [write]})
        assert response is not None
        return self._json(response).get("commitTime", "")

    def test_connection(self) -> bool:
        """Test if the backend is reachable and accepts our identity.

        Returns:
            True if connection is successful
        """
        try:
            self.get_document("__healthcheck__")
            return True
        except TransportError as e:
            logger.error(f"Firestore connection test failed: {e}")
            return False
