"""
Alert titles, value formatting and advisory message pools.

Titles and the summary sentence are deterministic for a parameter, status
and direction. The advisory sentence is picked from a pool so repeated
alerts vary their phrasing; ``pick_message`` takes a seed or a
``random.Random`` so tests can fix the choice.

Example:
    >>> pick_message(["a", "b", "c"], seed=1) == pick_message(["a", "b", "c"], seed=1)
    True
    >>> build_title("pH", 9.2, ParameterStatus.CRITICAL, Direction.HIGH)
    'pH Too High - 9.20'
"""

import random
from typing import Dict, Optional, Sequence, Tuple

from pureflow.models.readings import Direction, ParameterStatus
from pureflow.models.thresholds import ThresholdBand

RAIN_STATUS_TEXT: Dict[int, str] = {
    0: "No Rain",
    1: "Raining",
    2: "Heavy Rain",
}

RAIN_MESSAGES: Dict[int, str] = {
    1: (
        "Light to moderate rain detected. Monitor water parameters for "
        "potential changes in turbidity and pH."
    ),
    2: (
        "Heavy rain detected. Increased monitoring recommended as runoff may "
        "affect water quality parameters."
    ),
}

# (parameter, direction) -> {status: title prefix}
_TITLES: Dict[Tuple[str, Direction], Dict[ParameterStatus, str]] = {
    ("ph", Direction.HIGH): {
        ParameterStatus.CRITICAL: "pH Too High",
        ParameterStatus.WARNING: "pH Rising",
    },
    ("ph", Direction.LOW): {
        ParameterStatus.CRITICAL: "pH Too Low",
        ParameterStatus.WARNING: "pH Falling",
    },
    ("temperature", Direction.HIGH): {
        ParameterStatus.CRITICAL: "Temperature Critical",
        ParameterStatus.WARNING: "Temperature High",
    },
    ("temperature", Direction.LOW): {
        ParameterStatus.CRITICAL: "Temperature Too Low",
        ParameterStatus.WARNING: "Temperature Low",
    },
    ("turbidity", Direction.HIGH): {
        ParameterStatus.CRITICAL: "Turbidity Critical",
        ParameterStatus.WARNING: "Water Cloudy",
    },
    ("turbidity", Direction.LOW): {
        ParameterStatus.CRITICAL: "Turbidity Too Low",
        ParameterStatus.WARNING: "Turbidity Low",
    },
    ("salinity", Direction.HIGH): {
        ParameterStatus.CRITICAL: "Salinity Too High",
        ParameterStatus.WARNING: "Salinity Rising",
    },
    ("salinity", Direction.LOW): {
        ParameterStatus.CRITICAL: "Salinity Too Low",
        ParameterStatus.WARNING: "Salinity Falling",
    },
}

MESSAGE_POOLS: Dict[Tuple[str, Direction], Tuple[str, ...]] = {
    ("ph", Direction.HIGH): (
        "Alkaline water stresses gills and raises ammonia toxicity.",
        "High pH can reduce feeding; consider a partial water change.",
        "Check for algal blooms, which push pH up during the day.",
    ),
    ("ph", Direction.LOW): (
        "Acidic water can damage gills and slow growth.",
        "Low pH often follows heavy rain or decomposing organic matter.",
        "Consider agricultural lime to buffer the pond.",
    ),
    ("temperature", Direction.HIGH): (
        "Warm water holds less oxygen; increase aeration.",
        "High temperature raises metabolic stress; reduce feeding.",
        "Provide shade or add cooler water if possible.",
    ),
    ("temperature", Direction.LOW): (
        "Cold water slows metabolism and feeding.",
        "Low temperature weakens immune response; watch for disease.",
        "Reduce feeding until the temperature recovers.",
    ),
    ("turbidity", Direction.HIGH): (
        "Cloudy water limits light and may clog gills.",
        "High turbidity often follows runoff; check inflows.",
        "Suspended solids can reduce dissolved oxygen; monitor aeration.",
    ),
    ("turbidity", Direction.LOW): (
        "Very clear water may indicate low plankton levels.",
        "Low turbidity can expose stock to predators and sunlight stress.",
    ),
    ("salinity", Direction.HIGH): (
        "Rising salinity stresses freshwater species; dilute with fresh water.",
        "High salinity can follow evaporation; top up the pond.",
    ),
    ("salinity", Direction.LOW): (
        "Falling salinity stresses marine species; check for freshwater inflow.",
        "Low salinity often follows heavy rain; monitor closely.",
    ),
}


def fallback_message(parameter: str) -> str:
    """Advisory text used when no pool exists for a parameter/direction."""
    return (
        f"{display_name(parameter)} level is outside normal range and may "
        "affect aquaculture species."
    )


def pick_message(
    pool: Sequence[str],
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """
    Pick one message from a pool.

    Args:
        pool: Candidate messages.
        seed: Seed for a one-off generator; the same seed always picks the
            same message.
        rng: Generator to draw from. Ignored when ``seed`` is given.

    Returns:
        Optional[str]: The chosen message, or None for an empty pool.
    """
    if not pool:
        return None
    if seed is not None:
        rng = random.Random(seed)
    elif rng is None:
        rng = random.Random()
    return pool[rng.randrange(len(pool))]


def display_name(parameter: str) -> str:
    """Capitalised parameter name for user-facing text."""
    if parameter.lower() == "ph":
        return "pH"
    return parameter[:1].upper() + parameter[1:]


def format_value(parameter: str, value: float) -> str:
    """
    Format a value with the parameter's unit and precision.

    pH uses two decimals; temperature, turbidity and salinity use one decimal
    with their unit.
    """
    name = parameter.lower()
    if name == "temperature":
        return f"{value:.1f}°C"
    if name == "turbidity":
        return f"{value:.1f} NTU"
    if name == "salinity":
        return f"{value:.1f} ppt"
    return f"{value:.2f}"


def build_title(
    parameter: str,
    value: float,
    status: ParameterStatus,
    direction: Direction,
) -> str:
    """
    Build the actionable title for a breach.

    Example:
        >>> build_title("turbidity", 62, ParameterStatus.WARNING, Direction.HIGH)
        'Water Cloudy - 62.0 NTU'
    """
    prefix = _TITLES.get((parameter.lower(), direction), {}).get(status)
    if prefix is None:
        prefix = f"{display_name(parameter)} {status.value.capitalize()}"
    return f"{prefix} - {format_value(parameter, value)}"


def build_summary(
    parameter: str,
    value: float,
    status: ParameterStatus,
    band: Optional[ThresholdBand],
) -> str:
    """Deterministic summary sentence including the safe range."""
    text = f"{display_name(parameter)} reading of {format_value(parameter, value)} is {status.value}"
    if band is not None:
        text += f" (Safe range: {band.min:g} - {band.max:g})"
    return text


def build_message(
    parameter: str,
    value: float,
    status: ParameterStatus,
    direction: Direction,
    band: Optional[ThresholdBand] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Build the full alert message: summary followed by pooled advice.

    Args:
        parameter: Parameter name.
        value: Reading value.
        status: Evaluation status.
        direction: Breach direction.
        band: Band used for the safe range text.
        rng: Generator used for the pool choice.

    Returns:
        str: Message text.
    """
    pool = MESSAGE_POOLS.get((parameter.lower(), direction), ())
    advice = pick_message(pool, rng=rng) or fallback_message(parameter)
    return f"{build_summary(parameter, value, status, band)}. {advice}"


def rain_title(level: int) -> str:
    """Title for a rain alert, e.g. ``Weather Update: Heavy Rain Detected``."""
    status = RAIN_STATUS_TEXT.get(level, f"Unknown ({level})")
    return f"Weather Update: {status} Detected"


def rain_message(level: int) -> str:
    """Message for a rain alert."""
    return RAIN_MESSAGES.get(
        level,
        f"Rain sensor status: {RAIN_STATUS_TEXT.get(level, level)}. Monitor water parameters closely.",
    )


def harmful_state_title(parameters: Sequence[str]) -> str:
    """
    Title for the aggregate alert over several breached parameters.

    Example:
        >>> harmful_state_title(["pH", "temperature"])
        'Harmful Water State - pH, Temperature'
    """
    return f"Harmful Water State - {', '.join(display_name(p) for p in parameters)}"


def harmful_state_message(breaches: Sequence[Tuple[str, float]]) -> str:
    """Message listing every breached parameter with its value."""
    listed = ", ".join(f"{display_name(p)} {format_value(p, v)}" for p, v in breaches)
    return (
        f"{len(breaches)} parameters are outside the safe range ({listed}). "
        "Conditions are harmful to stock; act on the most critical parameter first."
    )
