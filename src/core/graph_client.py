"""
MS Graph client setup with lazy initialization.
"""

from azure.identity import ClientSecretCredential
from msgraph import GraphServiceClient

from core.config import GRAPH_APP_ID, GRAPH_CLIENT_SECRET, GRAPH_TENANT_ID
from core.exceptions import MissingCredentialsError

_graph_client: GraphServiceClient | None = None


def has_graph_credentials() -> bool:
    """Check whether all app-only credentials are configured."""
    return bool(GRAPH_TENANT_ID and GRAPH_APP_ID and GRAPH_CLIENT_SECRET)


def get_graph_client() -> GraphServiceClient:
    """
    Get or create the MS Graph client (lazy initialization).

    Raises:
        MissingCredentialsError: if tenant, app id or secret is not set
    """
    global _graph_client
    if _graph_client is None:
        if not has_graph_credentials():
            raise MissingCredentialsError(
                "Missing Microsoft Graph credentials. Set MICROSOFT_GRAPH_TENANT_ID, "
                "MICROSOFT_GRAPH_APP_ID, MICROSOFT_GRAPH_CLIENT_SECRET"
            )
        credential = ClientSecretCredential(
            tenant_id=GRAPH_TENANT_ID,
            client_id=GRAPH_APP_ID,
            client_secret=GRAPH_CLIENT_SECRET,
        )
        _graph_client = GraphServiceClient(
            credentials=credential,
            scopes=["https://graph.microsoft.com/.default"],
        )
    return _graph_client
