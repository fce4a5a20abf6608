"""
Command-line interface for the sharelog Parquet converter.

Usage:
    python -m sharelog_parquet convert /data/sharelog/sharelog-2019-06-01.bin -o ./out.parquet
    python -m sharelog_parquet validate /data/sharelog/sharelog-2019-06-01.bin
    python -m sharelog_parquet inspect ./out.parquet
    python -m sharelog_parquet info
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .converter import (
    append_summary_csv,
    convert_sharelog,
    summarize_parquet,
    validate_sharelog,
)
from .errors import OutputWriteError
from .models import CURRENT_VERSION, PREFIX_SIZE, ShareFraming, WriterConfig
from .writer import BEAM_COLUMNS, BeamShareLayout

app = typer.Typer(
    name="sharelog-parquet",
    help="BEAM sharelog to Parquet converter",
    add_completion=False,
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _echo_summary(summary) -> None:
    typer.echo(f"  Records read: {summary.records_read}")
    typer.echo(f"  Shares decoded: {summary.records_written}")
    typer.echo(f"  Unsupported version: {summary.unsupported_version}")
    typer.echo(f"  Malformed: {summary.malformed}")
    typer.echo(f"  Truncated: {summary.truncated}")


@app.command()
def convert(
    input_file: Path = typer.Argument(
        ...,
        help="Sharelog file to convert (.gz accepted)",
        exists=True,
        dir_okay=False,
        file_okay=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Parquet output file (default: input file with .parquet suffix)",
    ),
    framing: ShareFraming = typer.Option(
        ShareFraming.VERSIONED,
        "--framing", "-f",
        help="Record framing inside the sharelog",
    ),
    rows_per_group: int = typer.Option(
        1_000_000,
        "--rows-per-group", "-r",
        min=1,
        help="Rows per Parquet row group",
    ),
    compression: str = typer.Option(
        "snappy",
        "--compression", "-c",
        help="Column compression: none, snappy, gzip, zstd, brotli, lz4",
    ),
    summary_csv: Optional[Path] = typer.Option(
        None,
        "--summary-csv", "-s",
        help="Append the conversion counts as one row to this CSV",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Print verbose output",
    ),
):
    """
    Convert one sharelog file to Parquet.

    Shares with an unknown version or a bad payload are skipped. Whatever was
    read is flushed to the output even if the conversion is interrupted.
    """
    _setup_logging(verbose)
    try:
        config = WriterConfig(rows_per_row_group=rows_per_group, compression=compression)
    except ValidationError as e:
        raise typer.BadParameter(str(e), param_hint="--compression")

    try:
        summary = convert_sharelog(
            input_path=input_file,
            output_path=output,
            framing=framing,
            config=config,
        )
    except OutputWriteError as e:
        typer.echo(typer.style(f"ERROR: {e}", fg=typer.colors.RED), err=True)
        raise typer.Exit(2)

    typer.echo(f"Converted {input_file} -> {summary.output_path}")
    _echo_summary(summary)
    typer.echo(f"  Row groups: {summary.row_groups}")
    if summary.malformed_ips:
        typer.echo(typer.style(
            f"  WARNING: {summary.malformed_ips} shares with an unparseable ip",
            fg=typer.colors.YELLOW,
        ))

    if summary_csv:
        append_summary_csv(summary, summary_csv)
        typer.echo(f"Updated summary: {summary_csv}")

@app.command()
def validate(
    input_file: Path = typer.Argument(
        ...,
        help="Sharelog file to validate",
        exists=True,
        dir_okay=False,
        file_okay=True,
    ),
    framing: ShareFraming = typer.Option(
        ShareFraming.VERSIONED,
        "--framing", "-f",
        help="Record framing inside the sharelog",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Print verbose output",
    ),
):
    """
    Decode every record of a sharelog without writing output.

    Fails when any record is malformed or the file ends mid-record.
    """
    _setup_logging(verbose)
    typer.echo(f"Validating: {input_file}")

    summary = validate_sharelog(input_file, framing=framing)
    _echo_summary(summary)

    if summary.malformed or summary.truncated:
        typer.echo(typer.style("Validation failed", fg=typer.colors.RED))
        raise typer.Exit(1)
    typer.echo(typer.style("Validation passed", fg=typer.colors.GREEN))


@app.command()
def inspect(
    parquet_file: Path = typer.Argument(
        ...,
        help="Parquet file produced by convert",
        exists=True,
        dir_okay=False,
        file_okay=True,
    ),
):
    """
    Summarize a converted Parquet file.
    """
    result = summarize_parquet(parquet_file)

    typer.echo(f"{parquet_file}:")
    typer.echo(f"  Table: {result['table']}")
    typer.echo(f"  Rows: {result['rows']} in {result['row_groups']} row groups")
    if result["rows"]:
        typer.echo(f"  Index: {result['index_min']}..{result['index_max']}")
        if not result["index_contiguous"]:
            typer.echo(typer.style("  WARNING: index has gaps", fg=typer.colors.YELLOW))
        typer.echo(f"  Max network difficulty: {result['network_diff_max']:.6g}")
        typer.echo(f"  Mean difficulty reached: {result['diff_reached_mean']:.6g}")
        typer.echo(f"  Max difficulty reached: {result['diff_reached_max']:.6g}")


@app.command()
def info():
    """
    Display sharelog and output format information.
    """
    typer.echo("Sharelog Record Formats:")
    typer.echo("")
    typer.echo("versioned (default):")
    typer.echo(f"  Frame: <u32 size><size bytes> (little-endian)")
    typer.echo(f"  Body: <u32 version><BeamMsg protobuf>, version 0x{CURRENT_VERSION:08x}")
    typer.echo("")
    typer.echo("length-prefixed:")
    typer.echo(f"  Record: <u32 payload length><BeamMsg protobuf>, {PREFIX_SIZE}-byte prefix")
    typer.echo("")
    typer.echo(f"Output table: {BeamShareLayout.name}")
    for col in BEAM_COLUMNS:
        typer.echo(f"  {col.name}: {col.arrow_type}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
