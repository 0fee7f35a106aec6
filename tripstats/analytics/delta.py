def percent_change(current: float, previous: float) -> float:
    """Signed % change against the previous window.

    Growth from nothing is reported as +100 rather than infinity.
    """
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return (current - previous) / previous * 100
