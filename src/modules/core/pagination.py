"""Pagination shared by list endpoints."""

from __future__ import annotations

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """``?page=N&limit=M`` pagination.

    Response shape::

        {"orders": [...], "pagination": {"page", "limit", "total", "totalPages"}}

    ``results_key`` lets other list endpoints rename the collection.
    """

    page_size_query_param = "limit"
    max_page_size = 100
    results_key = "orders"

    def get_paginated_response(self, data) -> Response:
        page = self.page
        return Response(
            {
                self.results_key: data,
                "pagination": {
                    "page": page.number,
                    "limit": page.paginator.per_page,
                    "total": page.paginator.count,
                    "totalPages": page.paginator.num_pages,
                },
            }
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                self.results_key: schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer"},
                        "limit": {"type": "integer"},
                        "total": {"type": "integer"},
                        "totalPages": {"type": "integer"},
                    },
                },
            },
        }
