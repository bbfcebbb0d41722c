import pytest

from grape.core.pagination import MAX_PAGE_SIZE, PageRequest, build_pagination
from grape.services.errors import ValidationError


def test_offset_is_derived_from_page_and_limit():
    assert PageRequest(1, 10).offset == 0
    assert PageRequest(3, 10).offset == 20


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, MAX_PAGE_SIZE + 1)])
def test_out_of_range_requests_are_rejected(page, limit):
    with pytest.raises(ValidationError):
        PageRequest(page, limit)


def test_has_more_when_rows_remain():
    pagination = build_pagination(PageRequest(1, 10), returned=10, total=25)
    assert pagination.has_more is True
    assert (pagination.page, pagination.limit, pagination.total) == (1, 10, 25)


def test_last_page_has_no_more():
    assert build_pagination(PageRequest(3, 10), returned=5, total=25).has_more is False


def test_beyond_last_page_is_empty_without_more():
    assert build_pagination(PageRequest(9, 10), returned=0, total=25).has_more is False


def test_exact_fit_has_no_more():
    assert build_pagination(PageRequest(2, 10), returned=10, total=20).has_more is False
