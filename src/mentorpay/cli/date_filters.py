"""CLI helpers for date range resolution."""

from datetime import date

import click

from mentorpay.utils.date_parser import PERIODS, get_date_range, month_range, parse_date


def date_range_options(func):
    """Add --start-date, --end-date, --month and --period to a command."""
    options = [
        click.option("--start-date", help="First day, inclusive (e.g. 2025-05-01, yesterday)"),
        click.option("--end-date", help="Last day, inclusive"),
        click.option("--month", help="Whole calendar month as YYYY-MM"),
        click.option("--period", type=click.Choice(PERIODS), help="Named period"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    month: str | None = None,
    period: str | None = None,
    default_range: tuple[date, date] | None = None,
) -> tuple[date | None, date | None]:
    """Resolve CLI date range from --month, --period or explicit dates."""
    if month and period:
        click.echo("Error: --month and --period cannot be combined.", err=True)
        ctx.exit(1)

    if (month or period) and (start_date or end_date):
        click.echo(
            "Error: --month and --period cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if month:
        try:
            return month_range(month)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)

    if period:
        return get_date_range(period)

    start = None
    end = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    if start is None and end is None and default_range is not None:
        start, end = default_range

    return start, end


def required_date_range(ctx, start_date, end_date, month, period) -> tuple[date, date]:
    """Resolve a date range and exit with an error unless both ends are known."""
    start, end = resolve_cli_date_range(
        ctx, start_date=start_date, end_date=end_date, month=month, period=period
    )
    if start is None or end is None:
        click.echo("Error: A date range is required (--month, --period or both dates).", err=True)
        ctx.exit(1)
    return start, end
