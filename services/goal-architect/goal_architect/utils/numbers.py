import math


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def hours_from_minutes(minutes: float) -> float:
    return round_half_up(minutes / 60, 1)
