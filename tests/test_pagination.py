from lingobook.shared.pagination import PaginationParams, build_page


def test_page_reports_more_items_beyond_current_slice() -> None:
    page = build_page([1, 2], total=5, params=PaginationParams(limit=2, offset=0))

    assert page.has_more is True
    assert page.model_dump()["has_more"] is True


def test_last_page_has_no_more_items() -> None:
    page = build_page([5], total=5, params=PaginationParams(limit=2, offset=4))

    assert page.has_more is False
    assert page.model_dump() == {"items": [5], "total": 5, "limit": 2, "offset": 4, "has_more": False}
