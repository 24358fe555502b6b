import jsonpickle
from datetime import datetime, timezone


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def iso_datestr_to_datetime(datestr):
    if isinstance(datestr, datetime):
        return datestr
    if isinstance(datestr, str) and len(datestr) > 0:
        if datestr[-1] == "Z":
            return datetime.fromisoformat(datestr.replace("Z", "+00:00"))
        else:
            return datetime.fromisoformat(datestr)
    else:
        raise ValueError("'{}' is not valid iso date format".format(datestr))


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


def canonicalize_dict(data):
    """
    Returns a canonical JSON representation of a dictionary.

    Keys are sorted recursively so the representation stays stable
    regardless of insertion order.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def deep_compare_dict(data1, data2) -> bool:
    """Compare two decoded JSON documents for structural equality.

    Missing keys, extra keys and differing values (including value types)
    all make the documents unequal. Key order is irrelevant, list order is not.
    """
    if data1 is None and data2 is None:
        return True
    if data1 is None or data2 is None:
        return False
    if not isinstance(data1, type(data2)) and not isinstance(data2, type(data1)):
        return False
    try:
        return canonicalize_dict(data1) == canonicalize_dict(data2)
    except (TypeError, ValueError):
        return data1 == data2


def merge_json(base, overrides):
    """Merge `overrides` into `base` following JSON merge-patch rules.

    Nested mappings are merged key by key, a `None` value removes the key,
    anything else replaces the value in `base`.
    """
    if not isinstance(overrides, dict):
        return overrides
    result = dict(base) if isinstance(base, dict) else {}
    for key, value in overrides.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_json(result.get(key), value)
    return result
