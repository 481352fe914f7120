"""Base service utilities for common patterns."""

from typing import Optional, Sequence
from google.auth import default
from google.auth.credentials import Credentials
from google.oauth2 import service_account

BIGQUERY_SCOPE = "https://www.googleapis.com/auth/bigquery.readonly"
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
DEFAULT_SCOPES = (BIGQUERY_SCOPE, SHEETS_SCOPE)


def get_default_credentials(
    credentials: Optional[Credentials] = None,
    credentials_path: Optional[str] = None,
    scopes: Sequence[str] = DEFAULT_SCOPES,
) -> Credentials:
    """Get GCP credentials if not provided.
    
    Args:
        credentials: Optional credentials object
        credentials_path: Optional service account key file. When unset,
            application default credentials are used.
        scopes: OAuth scopes to request
    
    Returns:
        GCP credentials object
    """
    if credentials is not None:
        return credentials
    if credentials_path:
        return service_account.Credentials.from_service_account_file(
            credentials_path, scopes=list(scopes)
        )
    credentials, _ = default(scopes=list(scopes))
    return credentials
