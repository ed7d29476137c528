"""
Critical-value alert evaluation.

Pure functions: given each component's current value and its catalog
alert bounds, report the values that fall outside the safe range. Nothing
here touches the database; callers fetch fresh bounds before every call.
"""

from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional
import math
import re

ALERT_MIN = "min"
ALERT_MAX = "max"

# Leading decimal number: sign, digits, optional "." or "," decimals, optional exponent.
# "130", " 4,5 ", "-0.2", "130 mg/dL" parse; "Negativo", "<5", "" do not.
# A comma is a decimal separator ("4,5" is 4.5), unlike parseFloat which stops at it.
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:[.,]\d*)?|[.,]\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class AlertReading:
    """One component's current value together with its catalog alert bounds."""

    component_id: int
    component_name: str
    value: Optional[str]
    alert_min: Optional[float] = None
    alert_max: Optional[float] = None
    order_analysis_id: Optional[int] = None


@dataclass(frozen=True)
class CriticalAlert:
    """A value outside its configured alert bound. Never persisted."""

    component_id: int
    component_name: str
    value: str
    kind: str
    threshold: float
    order_analysis_id: Optional[int] = None

    @property
    def key(self) -> tuple:
        """Identity used to match an operator's acknowledgement to this alert.

        Includes the value and threshold, so a changed value or bound is a new alert.
        """
        return (self.component_id, self.order_analysis_id, self.kind, self.value, float(self.threshold))

    def to_dict(self) -> dict:
        return asdict(self)


def parse_numeric(value: Optional[str]) -> Optional[float]:
    """
    Parse the leading number of a result value.

    Returns:
        The value as a finite float, or None for empty or textual results
    """
    if value is None:
        return None

    match = _NUMBER_RE.match(value.strip())
    if not match:
        return None

    try:
        number = float(match.group(0).replace(",", "."))
    except ValueError:
        return None

    if not math.isfinite(number):
        return None
    return number


def evaluate_reading(reading: AlertReading) -> List[CriticalAlert]:
    """Alerts for a single reading (at most one in practice)."""
    number = parse_numeric(reading.value)
    if number is None:
        return []

    alerts = []
    if reading.alert_min is not None and number < reading.alert_min:
        alerts.append(CriticalAlert(
            component_id=reading.component_id,
            component_name=reading.component_name,
            value=reading.value.strip(),
            kind=ALERT_MIN,
            threshold=reading.alert_min,
            order_analysis_id=reading.order_analysis_id
        ))
    if reading.alert_max is not None and number > reading.alert_max:
        alerts.append(CriticalAlert(
            component_id=reading.component_id,
            component_name=reading.component_name,
            value=reading.value.strip(),
            kind=ALERT_MAX,
            threshold=reading.alert_max,
            order_analysis_id=reading.order_analysis_id
        ))
    return alerts


def evaluate_alerts(readings: Iterable[AlertReading]) -> List[CriticalAlert]:
    """
    Evaluate every reading against its alert bounds.

    Non-numeric and empty values never alert. A value equal to a bound is
    within range. Output follows input order.
    """
    alerts = []
    for reading in readings:
        alerts.extend(evaluate_reading(reading))
    return alerts


def is_out_of_reference_range(
    value: Optional[str],
    reference_min: Optional[float],
    reference_max: Optional[float]
) -> bool:
    """Whether a value falls outside the reference range printed on the report."""
    number = parse_numeric(value)
    if number is None or (reference_min is None and reference_max is None):
        return False

    if reference_min is not None and number < reference_min:
        return True
    if reference_max is not None and number > reference_max:
        return True
    return False
