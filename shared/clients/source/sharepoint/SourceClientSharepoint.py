import asyncio
import time
from urllib.parse import quote

import httpx

from shared.helper.HelperConfig import HelperConfig
from shared.clients.source.SourceClientInterface import SourceClientInterface
from shared.models.config import EnvConfig
from shared.models.document import Site, SourceDocument


class SourceClientSharepoint(SourceClientInterface):
    """SharePoint Online over Microsoft Graph, authenticated with the OAuth2 client-credentials flow."""

    # refresh this many seconds before the token expires
    TOKEN_EXPIRY_MARGIN = 300

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://graph.microsoft.com/v1.0", val_type="string")
        self._tenant_id = self.get_config_val("TENANT_ID", default=None, val_type="string")
        self._client_id = self.get_config_val("CLIENT_ID", default=None, val_type="string")
        self._client_secret = self.get_config_val("CLIENT_SECRET", default=None, val_type="string")
        self._authority_url = self.get_config_val("AUTHORITY_URL", default="https://login.microsoftonline.com", val_type="string")
        self._scope = self.get_config_val("SCOPE", default="https://graph.microsoft.com/.default", val_type="string")

        self._access_token: str | None = None
        self._token_expires_at: float = 0.0
        # concurrent downloads share one refresh
        self._token_lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Sharepoint"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://graph.microsoft.com/v1.0"),
            EnvConfig(env_key="TENANT_ID", val_type="string", default=None),
            EnvConfig(env_key="CLIENT_ID", val_type="string", default=None),
            EnvConfig(env_key="CLIENT_SECRET", val_type="string", default=None),
            EnvConfig(env_key="AUTHORITY_URL", val_type="string", default="https://login.microsoftonline.com"),
            EnvConfig(env_key="SCOPE", val_type="string", default="https://graph.microsoft.com/.default"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        else:
            return {}

    def _get_token_url(self) -> str:
        return f"{self._authority_url.rstrip('/')}/{self._tenant_id}/oauth2/v2.0/token"

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/sites/root"

    def _get_endpoint_sites(self) -> str:
        return "/sites?search=*"

    def _get_endpoint_site(self, site_id: str) -> str:
        return f"/sites/{site_id}"

    def _get_endpoint_folder_children(self, site_id: str, folder_path: str) -> str:
        if folder_path == "/":
            return f"/sites/{site_id}/drive/root/children"
        return f"/sites/{site_id}/drive/root:{quote(folder_path)}:/children"

    def _get_endpoint_download(self, drive_id: str, document_id: str) -> str:
        # graph answers with a 302 to a pre-authenticated url
        return f"/drives/{drive_id}/items/{document_id}/content"

    ##########################################
    ############## PARSER ####################
    ##########################################

    def _parse_site(self, response: dict) -> Site:
        return Site(
            id=response["id"],
            display_name=response.get("displayName") or response.get("name") or response["id"],
            web_url=response.get("webUrl"),
        )

    def _parse_listing(self, response: dict) -> tuple[list[dict], str | None]:
        return response.get("value", []), response.get("@odata.nextLink")

    def _is_folder(self, entry: dict) -> bool:
        return "folder" in entry

    def _is_file(self, entry: dict) -> bool:
        return "file" in entry

    def _parse_document(self, entry: dict, site_id: str, folder_path: str) -> SourceDocument:
        parent = entry.get("parentReference", {})
        created_by = entry.get("createdBy", {}).get("user", {}).get("displayName")
        return SourceDocument(
            id=entry["id"],
            drive_id=parent.get("driveId", ""),
            site_id=site_id,
            name=entry["name"],
            folder_path=folder_path,
            content_type=entry.get("file", {}).get("mimeType") or "application/octet-stream",
            size=entry.get("size", 0),
            created=entry.get("createdDateTime"),
            last_modified=entry.get("lastModifiedDateTime"),
            created_by=created_by,
            web_url=entry.get("webUrl"),
        )

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        await super().boot(transport=transport)
        await self._do_fetch_token()

    async def _do_fetch_token(self) -> None:
        """
        Acquires an app-only access token.

        Raises:
            ClientRequestError: If the token endpoint rejects the credentials.
        """
        self._access_token = None
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_token_url(),
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": self._scope,
            },
            raise_on_error=True,
        )
        body = resp.json()
        self._access_token = body["access_token"]
        self._token_expires_at = time.monotonic() + int(body.get("expires_in", 3600))
        self.logging.debug("Acquired %s access token, valid for %ss", self._get_engine_name(), body.get("expires_in", 3600))

    def _token_is_stale(self) -> bool:
        return self._access_token is None or time.monotonic() >= self._token_expires_at - self.TOKEN_EXPIRY_MARGIN

    async def _ensure_token(self) -> None:
        if not self._token_is_stale():
            return
        async with self._token_lock:
            # another request may have refreshed while this one waited
            if self._token_is_stale():
                await self._do_fetch_token()

    async def do_request(self, method: str = "GET", endpoint: str = "", **kwargs) -> httpx.Response:
        if endpoint != self._get_token_url():
            await self._ensure_token()
        return await super().do_request(method=method, endpoint=endpoint, **kwargs)
