"""
Firestore query helpers using the FieldFilter API (avoids the positional
where() deprecation warning).
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def where_filter(query, field_path: str, op_string: str, value):
    """
    Apply a single field filter to a Firestore collection or query.

    Usage:
        query = where_filter(collection, "status", "==", "reported")
        query = where_filter(query, "latitude", ">=", 12.9)
    """
    return query.where(filter=FieldFilter(field_path, op_string, value))
