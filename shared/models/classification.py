"""Pydantic models produced by the document classifier."""

from typing import Literal

from pydantic import BaseModel, Field

Language = Literal["norwegian", "english", "mixed", "unknown"]


class VersionInfo(BaseModel):
    """Version parsed from a file name. v0.0 when the name carries none."""

    raw: str = "v0.0"
    major: int = 0
    minor: int = 0


class AuthorityInfo(BaseModel):
    is_authoritative: bool = False
    is_latest: bool = False
    is_translation: bool = False
    priority: int = 0


class PathInfo(BaseModel):
    category: str = "general"
    is_in_language_folder: bool = False
    language_folder: Language | None = None


class Classification(BaseModel):
    """Derived language/version/authority/path facts for one document."""

    language: Language = "unknown"
    version: VersionInfo = Field(default_factory=VersionInfo)
    authority: AuthorityInfo = Field(default_factory=AuthorityInfo)
    path: PathInfo = Field(default_factory=PathInfo)
