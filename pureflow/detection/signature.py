"""
Alert signature construction.

A signature is the deduplication key for an alert. Values are rounded to two
decimals so that sub-hundredth sensor noise maps to the same key.

Example:
    >>> build_signature("pH", AlertType.ERROR, "pH Too High - 9.20", 9.2049)
    'ph:error:pH Too High - 9.20:9.20'
"""

from typing import Union

from pureflow.models.alerts import AlertType


def build_signature(
    parameter: str,
    alert_type: Union[AlertType, str],
    title: str,
    value: float,
) -> str:
    """
    Build the deduplication key for an alert.

    Args:
        parameter: Parameter name, lower-cased in the key.
        alert_type: Alert presentation type.
        title: Alert title.
        value: Reading value, rounded to two decimals.

    Returns:
        str: Key in the form ``{parameter}:{type}:{title}:{value}``.
    """
    type_value = alert_type.value if isinstance(alert_type, AlertType) else str(alert_type)
    rounded = round(float(value), 2)
    # Normalise negative zero so -0.001 and 0.001 share a key
    if rounded == 0:
        rounded = 0.0
    return f"{parameter.strip().lower()}:{type_value}:{title}:{rounded:.2f}"
