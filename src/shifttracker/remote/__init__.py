"""Remote document store access."""

from .firestore_client import FirestoreClient, RemoteDocument

__all__ = ["FirestoreClient", "RemoteDocument"]
