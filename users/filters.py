"""
users/filters.py

Query-string filters for /api/users/:
- email=<addr>      (case-insensitive exact)
- min_age=<int>     age ≥ value
- max_age=<int>     age ≤ value
- has_photo=true|false
"""

from django_filters import rest_framework as dj_filters

from .models import User


class UserFilter(dj_filters.FilterSet):
    email = dj_filters.CharFilter(field_name="email", lookup_expr="iexact")
    min_age = dj_filters.NumberFilter(field_name="age", lookup_expr="gte")
    max_age = dj_filters.NumberFilter(field_name="age", lookup_expr="lte")
    has_photo = dj_filters.BooleanFilter(method="filter_has_photo")

    class Meta:
        model = User
        fields = ["email", "min_age", "max_age", "has_photo"]

    def filter_has_photo(self, queryset, name, value):
        with_photo = queryset.exclude(photo__isnull=True).exclude(photo="")
        if value:
            return with_photo
        return queryset.exclude(pk__in=with_photo.values("pk"))
