"""Conversion of endpoint group and name into a storage key."""

_SANITIZE_TABLE = str.maketrans({char: "-" for char in "/_., "})


def _sanitize(value: str) -> str:
    return value.lower().strip().translate(_SANITIZE_TABLE)


def convert_group_and_endpoint_name_to_key(group_name: str, endpoint_name: str) -> str:
    """Build the key that identifies an endpoint within its group."""
    return f"{_sanitize(group_name)}_{_sanitize(endpoint_name)}"