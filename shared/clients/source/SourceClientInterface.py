from abc import abstractmethod
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.models.document import Site, SourceDocument


class SourceClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "source"
        """
        return "source"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_sites(self) -> str:
        """
        Returns the endpoint path listing all sites visible to the client.

        Returns:
            str: The endpoint path (e.g. "/sites?search=*")
        """
        pass

    @abstractmethod
    def _get_endpoint_site(self, site_id: str) -> str:
        """
        Returns the endpoint path of a single site.

        Args:
            site_id (str): The id of the site.
        """
        pass

    @abstractmethod
    def _get_endpoint_folder_children(self, site_id: str, folder_path: str) -> str:
        """
        Returns the endpoint path listing the direct children of a folder.

        Args:
            site_id (str): The id of the site.
            folder_path (str): Folder path relative to the library root, "/" for the root.
        """
        pass

    @abstractmethod
    def _get_endpoint_download(self, drive_id: str, document_id: str) -> str:
        """
        Returns the endpoint path returning the raw bytes of a file.

        Args:
            drive_id (str): The id of the drive (document library).
            document_id (str): The id of the file.
        """
        pass

    ##########################################
    ############## PARSER ####################
    ##########################################

    @abstractmethod
    def _parse_site(self, response: dict) -> Site:
        """Maps a raw site entry to a Site."""
        pass

    @abstractmethod
    def _parse_listing(self, response: dict) -> tuple[list[dict], str | None]:
        """
        Splits a raw listing page into its entries and the next page link.

        Returns:
            tuple[list[dict], str | None]: The raw entries and the absolute url of the next page, if any.
        """
        pass

    @abstractmethod
    def _is_folder(self, entry: dict) -> bool:
        """Returns True if the raw listing entry is a folder."""
        pass

    @abstractmethod
    def _is_file(self, entry: dict) -> bool:
        """Returns True if the raw listing entry is a file."""
        pass

    @abstractmethod
    def _parse_document(self, entry: dict, site_id: str, folder_path: str) -> SourceDocument:
        """
        Maps a raw file entry to a SourceDocument.

        Args:
            entry (dict): The raw listing entry.
            site_id (str): The site the entry was listed from.
            folder_path (str): The folder the entry was listed from.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_fetch_paginated(self, endpoint: str) -> list[dict]:
        """Follows next page links until the listing is exhausted."""
        entries: list[dict] = []
        next_endpoint: str | None = endpoint
        page = 1
        while next_endpoint:
            resp = await self.do_request(method="GET", endpoint=next_endpoint, raise_on_error=True)
            page_entries, next_endpoint = self._parse_listing(resp.json())
            entries.extend(page_entries)
            self.logging.debug("Fetched page %d from %s, total entries so far: %d", page, self._get_engine_name(), len(entries))
            page += 1
        return entries

    async def do_fetch_sites(self) -> list[Site]:
        """
        Fetches all sites visible to the client.

        Returns:
            list[Site]: The sites.

        Raises:
            ClientRequestError: If the backend rejects the request.
        """
        entries = await self._do_fetch_paginated(self._get_endpoint_sites())
        sites = [self._parse_site(entry) for entry in entries]
        self.logging.info("Fetched %d sites from %s", len(sites), self._get_engine_name())
        return sites

    async def do_fetch_site(self, site_id: str) -> Site:
        """
        Fetches a single site by id.

        Raises:
            ClientRequestError: If the site does not exist or the request fails.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_site(site_id), raise_on_error=True)
        return self._parse_site(resp.json())

    async def do_fetch_documents(self, site_id: str, folder_path: str = "/", recursive: bool = False) -> list[SourceDocument]:
        """
        Lists all files in a folder, optionally descending into subfolders.

        Args:
            site_id (str): The id of the site.
            folder_path (str): Folder path relative to the library root.
            recursive (bool): Whether to include files of all subfolders.

        Returns:
            list[SourceDocument]: The files, in listing order. Subfolder contents follow their parent's files.

        Raises:
            ClientRequestError: If a listing request fails.
        """
        folder_path = self.normalize_folder_path(folder_path)
        entries = await self._do_fetch_paginated(self._get_endpoint_folder_children(site_id, folder_path))

        documents: list[SourceDocument] = []
        subfolders: list[str] = []
        for entry in entries:
            if self._is_file(entry):
                documents.append(self._parse_document(entry, site_id=site_id, folder_path=folder_path))
            elif recursive and self._is_folder(entry):
                subfolders.append(self.join_folder_path(folder_path, entry.get("name", "")))

        for subfolder in subfolders:
            documents.extend(await self.do_fetch_documents(site_id, subfolder, recursive=True))

        self.logging.debug("Listed %d documents in %s (recursive=%s)", len(documents), folder_path, recursive)
        return documents

    async def do_download_document(self, drive_id: str, document_id: str) -> bytes:
        """
        Downloads the raw bytes of a file.

        Raises:
            ClientRequestError: If the download fails.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_download(drive_id, document_id), raise_on_error=True)
        return resp.content

    ##########################################
    ################ HELPER ##################
    ##########################################

    @staticmethod
    def normalize_folder_path(folder_path: str | None) -> str:
        """Empty paths become "/", other paths get exactly one leading and no trailing slash."""
        stripped = (folder_path or "").strip().strip("/")
        return f"/{stripped}" if stripped else "/"

    @staticmethod
    def join_folder_path(parent: str, name: str) -> str:
        return f"{parent.rstrip('/')}/{name}"
