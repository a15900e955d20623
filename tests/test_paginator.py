import pytest

from application.paginator import collect_all
from core.errors import RemoteRequestError

PAGE_2 = "https://graph.microsoft.com/v1.0/planner/plans/p1/tasks?$skiptoken=2"
PAGE_3 = "https://graph.microsoft.com/v1.0/planner/plans/p1/tasks?$skiptoken=3"


class PagedTransport:
    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    def request(self, method, path, body=None, query=None, headers=None):
        self.calls.append((method, path, query))
        page = self.pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


def test_collects_every_page_in_order():
    transport = PagedTransport(
        [
            {"value": [{"id": 1}, {"id": 2}], "@odata.nextLink": PAGE_2},
            {"value": [{"id": 3}, {"id": 4}], "@odata.nextLink": PAGE_3},
            {"value": [{"id": 5}, {"id": 6}]},
        ]
    )

    items = collect_all(transport, "/planner/plans/p1/tasks", {"$select": "id,title"})

    assert [item["id"] for item in items] == [1, 2, 3, 4, 5, 6]
    assert transport.calls == [
        ("GET", "/planner/plans/p1/tasks", {"$select": "id,title"}),
        ("GET", PAGE_2, None),
        ("GET", PAGE_3, None),
    ]


def test_single_page_and_custom_property():
    transport = PagedTransport([{"posts": [{"id": "a"}]}])

    assert collect_all(transport, "/x", property_name="posts") == [{"id": "a"}]
    assert transport.calls == [("GET", "/x", {})]


def test_missing_collection_yields_nothing():
    assert collect_all(PagedTransport([{}]), "/x") == []


def test_failing_page_propagates():
    transport = PagedTransport(
        [
            {"value": [{"id": 1}], "@odata.nextLink": PAGE_2},
            RemoteRequestError("server error", status=500),
        ]
    )

    with pytest.raises(RemoteRequestError):
        collect_all(transport, "/planner/plans/p1/tasks")
    assert len(transport.calls) == 2
