from django.core.paginator import Paginator


def paginate(queryset, page=1, limit=10):
    """Return (page_items, pagination_dict) for a queryset."""
    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    return list(page_obj.object_list), {
        'page':  page_obj.number,
        'limit': limit,
        'total': paginator.count,
        'pages': paginator.num_pages if paginator.count else 0,
    }
