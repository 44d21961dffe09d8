"""Factory for creating the remote document store client."""

import logging
from typing import Optional

from ..config import Config
from ..errors import RemoteUnavailable
from .firestore_client import FirestoreClient

logger = logging.getLogger(__name__)


class RemoteFactory:
    """Factory for creating remote clients with configuration."""

    @staticmethod
    def create_document_store(config: Config) -> Optional[FirestoreClient]:
        """Create the Firestore client, or None if the backend is not configured.

        Raises:
            RemoteUnavailable: If the remote section is only partly filled in
        """
        remote = config.remote
        if not remote.get("project_id") and not remote.get("api_key"):
            logger.info("Remote backend not configured, running local-only")
            return None
        if not config.remote_configured:
            raise RemoteUnavailable("remote.project_id and remote.api_key must be set together")
        return FirestoreClient(
            project_id=remote["project_id"],
            api_key=remote["api_key"],
            collection=remote.get("collection", "rooms"),
            base_url=remote.get("base_url", "https://firestore.googleapis.com/v1"),
            auth_url=remote.get("auth_url", "https://identitytoolkit.googleapis.com/v1"),
            timeout=float(remote.get("timeout_seconds", 30)),
        )
