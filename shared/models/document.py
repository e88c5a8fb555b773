"""Pydantic models for repository objects.

Hierarchy:
  Site           : a document container (SharePoint site) in the source repository.
  SourceDocument : immutable snapshot of one file at ingestion time.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class Site(BaseModel):
    """A site (document container) as listed by a source client."""

    id: str
    display_name: str
    web_url: str | None = None


class SourceDocument(BaseModel):
    """Snapshot of a single repository file.

    Backend-independent; source clients map their raw listing entries into
    this type. Frozen so that content-type correction or drive id overrides
    always produce a new object via model_copy().
    """

    model_config = ConfigDict(frozen=True)

    id: str
    drive_id: str
    site_id: str
    site_name: str | None = None
    name: str
    folder_path: str = "/"
    content_type: str = "application/octet-stream"
    size: int = 0
    created: datetime | None = None
    last_modified: datetime | None = None
    created_by: str | None = None
    web_url: str | None = None
