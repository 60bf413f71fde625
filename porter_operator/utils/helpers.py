import jsonpickle
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures.

    Args:
        d: Data structure (dict, list, or primitive type)

    Returns:
        Sorted version of the data structure
    """
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data: Dict[str, Any]) -> str:
    """
    Returns a canonical JSON representation of a dictionary.

    Keys are sorted recursively so the representation stays the same
    regardless of the order the API server returned them in.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def iter_sorted_items(mapping: Optional[Mapping[str, Any]]) -> Iterator[tuple]:
    """Iterate over a mapping ordered by key. A missing mapping yields nothing."""
    for key in sorted(mapping or {}):
        yield key, mapping[key]


def repeated_flag(flag: str, values: Iterable[str]) -> List[str]:
    """Expand `values` into one `flag=value` argument per value."""
    return [f"{flag}={value}" for value in values or []]
