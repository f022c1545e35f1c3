"""
Pagination classes for the API.
"""

from collections import OrderedDict

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardResultsSetPagination(PageNumberPagination):
    """
    Page-number pagination with ?page_size=N (default 50, max 1000).

    The payload also carries the current page and the page count so the
    registry tables can render their pager without extra requests.
    """
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 1000

    def get_paginated_response(self, data):
        return Response(OrderedDict([
            ('count', self.page.paginator.count),
            ('page', self.page.number),
            ('total_pages', self.page.paginator.num_pages),
            ('next', self.get_next_link()),
            ('previous', self.get_previous_link()),
            ('results', data),
        ]))

    def get_paginated_response_schema(self, schema):
        response_schema = super().get_paginated_response_schema(schema)
        response_schema['properties']['page'] = {'type': 'integer', 'example': 1}
        response_schema['properties']['total_pages'] = {'type': 'integer', 'example': 3}
        return response_schema


class LargeResultsSetPagination(StandardResultsSetPagination):
    """Villages, schools and health facilities, loaded whole into pickers."""
    page_size = 500
    max_page_size = 5000
