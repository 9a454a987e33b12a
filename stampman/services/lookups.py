"""Caller resolution and pagination shared by the services."""

import uuid
from dataclasses import dataclass, field

from django.core.paginator import Paginator

from stampman.conf import stampman_settings
from stampman.exceptions import StampmanError
from stampman.models import Business, Client


@dataclass
class PageResult:
    """One page of a listing."""

    items: list = field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0


def get_business(business_code: str) -> Business:
    """Active business by code, or BUSINESS_NOT_FOUND."""
    try:
        return Business.objects.get(code=business_code, is_active=True)
    except Business.DoesNotExist:
        raise StampmanError("BUSINESS_NOT_FOUND", business_code=business_code)


def get_client(client_code: str) -> Client:
    """Active client by code, or CLIENT_NOT_FOUND."""
    try:
        return Client.objects.get(code=client_code, is_active=True)
    except Client.DoesNotExist:
        raise StampmanError("CLIENT_NOT_FOUND", client_code=client_code)


def parse_uuid(value, error_code: str) -> uuid.UUID:
    """Opaque id from the caller; malformed ids are reported as not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise StampmanError(error_code, id=str(value))


def paginate(queryset, page: int = 1, page_size: int | None = None) -> PageResult:
    """
    Slice an ordered queryset into a PageResult.

    Out-of-range pages are clamped to the last page (Paginator.get_page).
    """
    if not page_size:
        page_size = stampman_settings.PAGE_SIZE
    page_size = min(page_size, stampman_settings.MAX_PAGE_SIZE)

    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)
    total = paginator.count
    return PageResult(
        items=list(page_obj.object_list),
        total=total,
        page=page_obj.number,
        total_pages=paginator.num_pages if total else 0,
    )
