from abc import abstractmethod
from typing import Any
import json

import httpx
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.ClientInterface import ClientInterface

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection_name(self) -> str:
        """Returns the name of the collection all points are written to."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collections(self) -> str:
        """Returns the endpoint path listing all collections (e.g. "/collections")."""
        pass

    @abstractmethod
    def _get_endpoint_collection(self) -> str:
        """Returns the endpoint path of the configured collection, used for create and delete."""
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """Returns the endpoint path for collection existence checks."""
        pass

    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """Returns the endpoint path for point upserts."""
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """Returns the endpoint path for vector similarity search."""
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """Returns the endpoint path for filtered scroll requests."""
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """Returns the endpoint path for deleting points by id or filter."""
        pass

    @abstractmethod
    def _get_endpoint_count(self) -> str:
        """Returns the endpoint path for counting points."""
        pass

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @abstractmethod
    def build_match_filters(self, match: dict[str, Any]) -> list[dict]:
        """
        Translates a flat {payload_key: value} mapping into backend filter conditions.

        Args:
            match (dict[str, Any]): Exact-match conditions, all of which must hold.

        Returns:
            list[dict]: Backend-specific filter conditions.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """Builds the payload that creates the collection."""
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], limit: int, filters: list[dict] | None = None, score_threshold: float | None = None) -> dict:
        """
        Builds the payload for a similarity search.

        Args:
            vector (list[float]): The query vector.
            limit (int): Maximum number of hits.
            filters (list[dict] | None): Conditions built by build_match_filters().
            score_threshold (float | None): Minimum similarity score.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        """
        Builds the payload for a scroll request.

        Args:
            filters (list[dict]): The filters to apply.
            with_payload (bool | list | dict): Whether, or which payload fields, to include.
            with_vector (bool | list): Whether to include vectors.
            limit (int | None): Maximum number of points per page.
            offset (str | None): Cursor returned by the previous page.

        Returns:
            dict: The payload for the scroll request.
        """
        pass

    @abstractmethod
    def get_count_payload(self, filters: list[dict]) -> dict:
        """Builds the payload for an exact point count."""
        pass

    @abstractmethod
    def get_delete_payload(self, point_ids: list[str]) -> dict:
        """Builds the payload for deleting points by id."""
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """Extracts {"result", "status", "time"} from a raw scroll response."""
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        """Extracts the next scroll cursor, None on the last page."""
        pass

    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        """
        Extracts search hits from a raw search response.

        Returns:
            list[dict]: Hits with at least "id", "score" and "payload".
        """
        pass

    @abstractmethod
    def extract_collection_names(self, raw_response: dict) -> list[str]:
        """Extracts collection names from a raw collection listing."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_check_collection_existence(), raise_on_error=True)
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_list_collections(self) -> list[str]:
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_collections(), raise_on_error=True)
        return self.extract_collection_names(resp.json())

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        return await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_collection(),
            raise_on_error=True)

    async def do_delete_collection(self) -> None:
        """Drop the collection with all its points."""
        await self.do_request(method="DELETE", endpoint=self._get_endpoint_collection(), raise_on_error=True)

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> httpx.Response:
        """Upsert points into the collection.
        Inserts new points or replaces existing ones if a point with the same ID already exists.

        Args:
            points (list[dict[str, Any]]): The list of points to upsert.

        Returns:
            httpx.Response: The response from the upsert request.
        """
        return await self.do_request(
            method="PUT",
            content=json.dumps({"points": points}),
            params={"wait": "true"},
            endpoint=self._get_endpoint_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True)

    async def do_search(self, vector: list[float], limit: int, filters: list[dict] | None = None, score_threshold: float | None = None) -> list[dict]:
        """Run a similarity search.

        Args:
            vector (list[float]): The query vector.
            limit (int): Maximum number of hits.
            filters (list[dict] | None): Conditions built by build_match_filters().
            score_threshold (float | None): Minimum similarity score.

        Returns:
            list[dict]: Hits ordered by descending score.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vector, limit, filters, score_threshold)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_search_hits(resp.json())

    async def do_delete_points(self, point_ids: list[str]) -> None:
        """Delete points by their ids.

        Args:
            point_ids (list[str]): Point ids as stored in the backend.
        """
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(point_ids=point_ids)),
            params={"wait": "true"},
            endpoint=self._get_endpoint_delete_points(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_scroll(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> ScrollResult:
        """Scroll a single page of points matching the filters.

        Args:
            filters (list[dict]): The filters to apply to the scroll request.
            with_payload (bool | list | dict): Whether, or which payload fields, to include.
            with_vector (bool | list): Whether to include the vector.
            limit (int | None): The maximum number of results to return per page.
            offset (str | None): Pagination cursor from the previous page's next_page_offset.

        Returns:
            ScrollResult: The page, including next_page_offset when further pages are available.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(filters, with_payload, with_vector, limit, offset)),
            endpoint=self._get_endpoint_scroll(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = resp.json()
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_count(self, filters: list[dict] | None = None) -> int:
        """Count the points matching the given filters (all points when None).

        Returns:
            int: Total number of matching points.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_count_payload(filters or [])),
            endpoint=self._get_endpoint_count(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return resp.json().get("result", {}).get("count", 0)

    async def do_scroll_all(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, page_size: int = 1000) -> ScrollResult:
        """Scroll through ALL points matching the filters, paginating automatically.

        Returns:
            ScrollResult: All matching points. next_page_offset is always None.
        """
        all_points: list[dict] = []
        offset: str | None = None
        page = 1
        while True:
            page_result = await self.do_scroll(
                filters=filters,
                with_payload=with_payload,
                with_vector=with_vector,
                limit=page_size,
                offset=offset,
            )
            all_points.extend(page_result.result)
            self.logging.debug(
                "Fetched RAG points page %d from %s, total points so far: %d",
                page, self.get_engine_name(), len(all_points),
            )
            offset = page_result.next_page_offset
            if not offset:
                break
            page += 1
        return ScrollResult(result=all_points, status="ok", time=0)
