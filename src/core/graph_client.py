"""
MS Graph client for calendar export, created on first use.
"""

from azure.identity import ClientSecretCredential
from msgraph import GraphServiceClient

from core.config import GRAPH_APP_ID, GRAPH_CLIENT_SECRET, GRAPH_TENANT_ID

_graph_client: GraphServiceClient | None = None


def graph_configured() -> bool:
    return bool(GRAPH_TENANT_ID and GRAPH_APP_ID and GRAPH_CLIENT_SECRET)


def get_graph_client() -> GraphServiceClient:
    """
    Get or create the MS Graph client.

    Raises:
        RuntimeError: Graph credentials are missing from the environment
    """
    global _graph_client
    if _graph_client is None:
        if not graph_configured():
            raise RuntimeError(
                "MS Graph credentials not configured "
                "(MICROSOFT_GRAPH_TENANT_ID, MICROSOFT_GRAPH_APP_ID, MICROSOFT_GRAPH_CLIENT_SECRET)"
            )
        credential = ClientSecretCredential(
            tenant_id=GRAPH_TENANT_ID,
            client_id=GRAPH_APP_ID,
            client_secret=GRAPH_CLIENT_SECRET,
        )
        _graph_client = GraphServiceClient(credentials=credential)
    return _graph_client
