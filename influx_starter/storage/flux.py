"""
Flux Builders — Query and Task Scripts

All Flux sent to InfluxDB is built here. Dynamic values (bucket names,
user ids, task names) go through flux_string() so a quote in a user id
cannot break out of its string literal.

Simple queries are in the format of from() |> range() |> filter().
Downsampling itself is done by InfluxDB; these functions only build text.
"""

from .config import (
    ALERT_EVERY,
    DOWNSAMPLE_EVERY,
    DOWNSAMPLED_MEASUREMENT,
    QUERY_WINDOW,
    USER_TAG,
)


def flux_string(value: str) -> str:
    """
    Render a value as a Flux string literal, quotes included.

    Escapes backslashes, double quotes and the `${` interpolation opener.
    """
    escaped = (
        str(value)
        .replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
    )
    return f'"{escaped}"'


def task_option(name: str, every: str) -> str:
    """The `option task` header every task script starts with."""
    return f"option task = {{name: {flux_string(name)}, every: {every}}}"


def last_downsampled_query(bucket: str, user_id: str) -> str:
    """
    Latest downsampled value per series for a user over the last 24 hours.

    Returns the latest min, max and mean value written by the
    downsampling task.
    """
    return (
        f"from(bucket: {flux_string(bucket)})\n"
        f"    |> range(start: {QUERY_WINDOW})\n"
        f"    |> filter(fn: (r) => r._measurement == {flux_string(DOWNSAMPLED_MEASUREMENT)})\n"
        f"    |> filter(fn: (r) => r.{USER_TAG} == {flux_string(user_id)})\n"
        f"    |> last()"
    )


def downsample_task_name(user_id: str) -> str:
    return f"{user_id}_downsample_task"


def alert_task_name(user_id: str) -> str:
    return f"{user_id}_task"


def downsample_task_flux(bucket: str, user_id: str, every: str = DOWNSAMPLE_EVERY) -> str:
    """
    Task script that downsamples one user's raw data.

    Computes max, min and mean per series over the last task period,
    suffixes the field names with the aggregate, unions the three result
    sets and writes them back to the source bucket under the
    `downsampled` measurement.
    """
    bucket_literal = flux_string(bucket)
    measurement_literal = flux_string(DOWNSAMPLED_MEASUREMENT)

    blocks = [
        task_option(downsample_task_name(user_id), every),
        f"data = from(bucket: {bucket_literal})\n"
        f"    |> range(start: -task.every)\n"
        f"    |> filter(fn: (r) => r._measurement != {measurement_literal})\n"
        f"    |> filter(fn: (r) => r.{USER_TAG} == {flux_string(user_id)})",
    ]
    for agg in ("max", "min", "mean"):
        blocks.append(
            f"{agg}_values = data\n"
            f"    |> {agg}()\n"
            f'    |> map(fn: (r) => ({{r with _field: r._field + "_{agg}"}}))'
        )
    blocks.append(
        "union(tables: [max_values, min_values, mean_values])\n"
        '    |> duplicate(column: "_stop", as: "_time")\n'
        f'    |> set(key: "_measurement", value: {measurement_literal})\n'
        f"    |> to(bucket: {bucket_literal})"
    )
    return "\n\n".join(blocks)


def zero_value_alert_flux(
    bucket: str,
    processed_bucket: str,
    user_id: str,
    every: str = ALERT_EVERY,
) -> str:
    """
    Task script that copies a user's zero-valued points into another bucket.

    A minimal alerting pattern: instead of to(), a real deployment could
    http.post() to a callback service.
    """
    return (
        f"{task_option(alert_task_name(user_id), every)}\n"
        f"from(bucket: {flux_string(bucket)})\n"
        f"    |> range(start: -{every})\n"
        f"    |> filter(fn: (r) => r.{USER_TAG} == {flux_string(user_id)})\n"
        f"    |> filter(fn: (r) => r._value == 0.0)\n"
        f"    |> to(bucket: {flux_string(processed_bucket)})"
    )
