"""
Page-number pagination with a client-selectable page size.

Response shape:
    {"items": [...], "total_pages": 3, "total_count": 42, "current_page": 1}
"""
import math

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PageLimitPagination(PageNumberPagination):
    page_query_param = 'page'
    page_size_query_param = 'limit'
    max_page_size = 200

    def get_paginated_response(self, data):
        count = self.page.paginator.count
        page_size = self.page.paginator.per_page
        return Response({
            'items': data,
            'total_pages': math.ceil(count / page_size) if count else 0,
            'total_count': count,
            'current_page': self.page.number,
        })

    def get_paginated_response_schema(self, schema):
        return {
            'type': 'object',
            'required': ['items', 'total_pages', 'total_count', 'current_page'],
            'properties': {
                'items': schema,
                'total_pages': {'type': 'integer'},
                'total_count': {'type': 'integer'},
                'current_page': {'type': 'integer'},
            },
        }
