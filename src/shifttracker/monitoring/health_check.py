"""Health check for the remote document store."""

import logging
from typing import Dict, Optional, Tuple

from ..remote.firestore_client import FirestoreClient
from .metrics_exporter import MetricsExporter

logger = logging.getLogger(__name__)


class HealthChecker:
    """Health check for external dependencies."""

    def __init__(
        self,
        remote: Optional[FirestoreClient],
        metrics_exporter: Optional[MetricsExporter] = None,
    ) -> None:
        self.remote = remote
        self.metrics_exporter = metrics_exporter

    def check_remote_health(self) -> Tuple[bool, str]:
        """Check remote backend health."""
        if self.remote is None:
            return False, "Not configured (local-only mode)"
        if self.remote.test_connection():
            return True, "OK"
        return False, "Connection test failed"

    def check_all(self) -> Dict[str, Dict[str, str]]:
        """Perform all health checks and return status.

        Local tracking does not depend on the remote, so the overall status
        stays healthy when the remote is merely unconfigured.
        """
        remote_healthy, remote_msg = self.check_remote_health()
        configured = self.remote is not None

        if self.metrics_exporter:
            self.metrics_exporter.export_health_metrics(remote_healthy)

        degraded = configured and not remote_healthy
        return {
            "remote": {
                "status": "healthy" if remote_healthy else ("unhealthy" if configured else "disabled"),
                "message": remote_msg,
            },
            "overall": {
                "status": "degraded" if degraded else "healthy",
                "message": (
                    "Remote sync unavailable, running local-only"
                    if degraded
                    else "All services healthy"
                ),
            },
        }
