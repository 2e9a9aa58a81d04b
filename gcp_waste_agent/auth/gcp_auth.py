"""GCP access token handling and connection verification."""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from gcp_waste_agent.core.exceptions import AuthenticationError
from gcp_waste_agent.services.inventory import COMPUTE_API, GcpCredentials


logger = logging.getLogger(__name__)

TOKEN_HELP = "Generate a token with: gcloud auth print-access-token"


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    message: str


def build_credentials(project_id: str, access_token: Optional[str]) -> GcpCredentials:
    """Build credentials for the live APIs.

    Raises:
        AuthenticationError: If no token was supplied
    """
    token = (access_token or '').strip()
    if not token:
        raise AuthenticationError(f"No GCP access token provided. {TOKEN_HELP}")
    return GcpCredentials(project_id=project_id, access_token=token)


class ConnectionVerifier:
    """Checks that a project is reachable with the supplied credentials."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: int = 15):
        self.session = session or requests.Session()
        self.timeout = timeout

    def verify(self, project_id: str, credentials: GcpCredentials) -> VerificationResult:
        """Verify access to the Compute Engine API for a project.

        Args:
            project_id: Project to check
            credentials: Access token holder

        Returns:
            VerificationResult; this method never raises.
        """
        if not credentials or not credentials.access_token:
            return VerificationResult(False, f"Missing access token. {TOKEN_HELP}")

        try:
            response = self.session.get(
                f"{COMPUTE_API}/projects/{project_id}",
                headers=credentials.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Connection verification failed for {project_id}: {e}")
            return VerificationResult(False, f"Network Error: {e}")

        if response.ok:
            logger.info(f"Verified Compute API access for {project_id}")
            return VerificationResult(True, "Connection Verified: Compute API Accessible")

        try:
            message = response.json().get('error', {}).get('message') or response.reason
        except (ValueError, AttributeError):
            message = response.reason

        logger.warning(f"Connection verification for {project_id} returned {response.status_code}")
        return VerificationResult(False, f"Error {response.status_code}: {message}")
