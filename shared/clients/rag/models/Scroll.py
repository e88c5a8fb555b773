from pydantic import BaseModel


class ScrollResult(BaseModel):
    """One scroll page, or every page collected by do_scroll_all().

    Attributes:
        result:           Point dicts ({"id", "payload", ...}).
        status:           Backend status string (e.g. "ok").
        time:             Backend execution time in seconds.
        next_page_offset: Cursor of the next page, None when exhausted.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0
    next_page_offset: str | None = None
