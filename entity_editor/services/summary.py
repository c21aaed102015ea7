from __future__ import annotations

from ..models.processing_result import ImportRunResult

"""SUMMARY line rendering for import runs.

Format::

    SUMMARY rows={sheet_rows} parsed={n} valid={n} invalid={n} inserted={n}
    failed={n} elapsed_sec={s} throughput_rps={r}

(one line; wrapped here for width). Numbers never use scientific notation and
integral values print without a decimal point.
"""

__all__ = [
    "render_summary_line",
    "format_number",
]


def format_number(value: float) -> str:
    """Render a metric the way the SUMMARY line expects.

    >>> format_number(2.0), format_number(0.0004), format_number(12.5)
    ('2', '0.0004', '12.5')
    """
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: ImportRunResult) -> str:
    """Render the SUMMARY line for one import run.

    Args:
        result: ImportRunResult with the run's counters

    Returns:
        Formatted SUMMARY line string
    """
    return (
        f"SUMMARY rows={result.sheet_rows} "
        f"parsed={result.parsed_rows} "
        f"valid={result.valid_rows} "
        f"invalid={result.invalid_rows} "
        f"inserted={result.inserted_rows} "
        f"failed={result.failed_rows} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
