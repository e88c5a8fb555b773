import re
from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.models.config import EnvConfig


class RAGClientQdrant(RAGClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="http://localhost:6333", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        raw_collection = self.get_config_val("COLLECTION", default="sharepoint_documents", val_type="string")
        self._collection_name = self.sanitize_collection_name(raw_collection)

    @staticmethod
    def sanitize_collection_name(name: str) -> str:
        """Qdrant collection names: lowercase letters, digits, "_" and "-"."""
        return re.sub(r"[^a-z0-9_-]", "_", name.lower())

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Qdrant"

    def get_collection_name(self) -> str:
        return self._collection_name

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="http://localhost:6333"),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="COLLECTION", val_type="string", default="sharepoint_documents"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"api-key": f"{self._api_key}"}
        else:
            return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_collections(self) -> str:
        return "/collections"

    def _get_endpoint_collection(self) -> str:
        return f"/collections/{self._collection_name}"

    def _get_endpoint_check_collection_existence(self) -> str:
        return f"/collections/{self._collection_name}/exists"

    def _get_endpoint_points(self) -> str:
        return f"/collections/{self._collection_name}/points"

    def _get_endpoint_search(self) -> str:
        return f"/collections/{self._collection_name}/points/search"

    def _get_endpoint_scroll(self) -> str:
        return f"/collections/{self._collection_name}/points/scroll"

    def _get_endpoint_delete_points(self) -> str:
        return f"/collections/{self._collection_name}/points/delete"

    def _get_endpoint_count(self) -> str:
        return f"/collections/{self._collection_name}/points/count"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def build_match_filters(self, match: dict[str, Any]) -> list[dict]:
        return [{"key": key, "match": {"value": value}} for key, value in match.items()]

    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        return {
            "vectors": {
                "size": vector_size,
                "distance": distance,
                "on_disk": True,
            },
            "optimizers_config": {
                "default_segment_number": 2,
                "memmap_threshold": 20000,
            },
        }

    def get_search_payload(self, vector: list[float], limit: int, filters: list[dict] | None = None, score_threshold: float | None = None) -> dict:
        payload: dict = {
            "vector": vector,
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }
        if filters:
            payload["filter"] = {"must": filters}
        if score_threshold is not None:
            payload["score_threshold"] = score_threshold
        return payload

    def get_scroll_payload(self, filters: list[dict], with_payload: bool | list | dict, with_vector: bool | list, limit: int | None = None, offset: str | None = None) -> dict:
        payload = {
            "filter": {"must": filters},
            "limit": limit,
            "with_payload": with_payload,
            "with_vector": with_vector,
        }
        if offset is not None:
            payload["offset"] = offset
        return payload

    def get_count_payload(self, filters: list[dict]) -> dict:
        if not filters:
            return {"exact": True}
        return {"filter": {"must": filters}, "exact": True}

    def get_delete_payload(self, point_ids: list[str]) -> dict:
        return {"points": point_ids}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_scroll_content(self, raw_response: dict) -> dict:
        result = raw_response.get("result", {})
        return {
            "result": result.get("points", []),
            "status": raw_response.get("status", "ok"),
            "time": raw_response.get("time", 0),
        }

    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        return raw_response.get("result", {}).get("next_page_offset")

    def extract_search_hits(self, raw_response: dict) -> list[dict]:
        return raw_response.get("result", []) or []

    def extract_collection_names(self, raw_response: dict) -> list[str]:
        collections = raw_response.get("result", {}).get("collections", [])
        return [c.get("name") for c in collections if c.get("name")]
