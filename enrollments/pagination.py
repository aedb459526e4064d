import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardPagination(PageNumberPagination):
    """``?page=&limit=`` pagination answering ``{data, pagination}``."""
    page_size = 20
    page_size_query_param = "limit"
    max_page_size = 100

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response({
            "data": data,
            "pagination": {
                "page": self.page.number,
                "limit": paginator.per_page,
                "total": paginator.count,
                "pages": math.ceil(paginator.count / paginator.per_page),
            },
        })

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "required": ["data", "pagination"],
            "properties": {
                "data": schema,
                "pagination": {
                    "type": "object",
                    "properties": {
                        "page": {"type": "integer", "example": 1},
                        "limit": {"type": "integer", "example": 20},
                        "total": {"type": "integer", "example": 57},
                        "pages": {"type": "integer", "example": 3},
                    },
                },
            },
        }
