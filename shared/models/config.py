from typing import Literal

from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    Describes one environment setting a client needs before it can boot.

    The key is relative to the client prefix, e.g. "BASE_URL" on the Qdrant
    RAG client resolves to RAG_QDRANT_BASE_URL.

    Attributes:
        env_key (str): The unprefixed name of the environment variable.
        val_type (str): One of "string", "number", "bool" and "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the setting as required.
    """

    env_key: str
    val_type: Literal["string", "number", "bool", "list"] = "string"
    default: str | int | float | bool | list | None = None
