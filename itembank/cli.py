"""
Item bank command line.

Usage:
    # Spreadsheet -> QTI zip
    itembank convert questions.xlsx --title "Midterm 1" --output ./out

    # QTI zip -> exam PDF and answer key
    itembank print ./out/midterm_1_qti.zip --paper-size letter

    # Show what a spreadsheet or QTI zip decodes to
    itembank inspect questions.csv

    # HTTP API
    itembank serve --port 8000
"""

from __future__ import annotations

import json
from pathlib import Path

import click

from itembank.config import get_settings
from itembank.errors import ItemBankError
from itembank.models import BatchWarning, QuizMetadata
from itembank.pipeline import (
    convert_spreadsheet_to_qti,
    import_spreadsheet,
    load_qti,
    options_for_quiz,
    print_exam,
)
from itembank.render import PAPER_SIZES, RenderOptions
from itembank.utils.logging_config import setup_logging


def _echo_warnings(warnings: list[BatchWarning], limit: int = 5) -> None:
    if not warnings:
        return
    click.echo(f"   ⚠ {len(warnings)} warnings")
    for warning in warnings[:limit]:
        where = f"row {warning.row_index + 1}" if warning.row_index is not None else warning.question_id or "-"
        click.echo(f"      [{warning.code.value}] {where}: {warning.message}", err=True)
    if len(warnings) > limit:
        click.echo(f"      ... and {len(warnings) - limit} more", err=True)


def _write(output_dir: Path, filename: str, data: bytes) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    path.write_bytes(data)
    return path


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """Convert quiz spreadsheets to QTI packages and QTI packages to printable exams."""
    setup_logging(verbose)


@cli.command()
@click.argument("sheet", type=click.Path(exists=True, dir_okay=False))
@click.option("--title", "-t", default=None, help="Quiz title (default from settings)")
@click.option("--description", "-d", default="", help="Quiz description")
@click.option("--output", "-o", type=click.Path(file_okay=False), default=".", help="Output directory")
def convert(sheet: str, title: str | None, description: str, output: str) -> None:
    """Convert a CSV/XLSX question sheet into a QTI 1.2 zip."""
    metadata = QuizMetadata(title=title or get_settings().default_quiz_title, description=description)
    click.echo(f"📄 Reading {Path(sheet).name}")
    try:
        built, encoded = convert_spreadsheet_to_qti(sheet, metadata)
    except ItemBankError as e:
        _echo_warnings(e.warnings)
        raise click.ClickException(str(e)) from e

    click.echo(f"   ✓ Built {len(built.questions)} questions ({built.skipped} rows skipped)")
    _echo_warnings(built.warnings)
    path = _write(Path(output), encoded.filename, encoded.archive)
    click.echo(f"   ✓ Exported {encoded.item_count} items to {path}")
    _echo_warnings(encoded.warnings)


@cli.command(name="print")
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(file_okay=False), default=".", help="Output directory")
@click.option(
    "--paper-size",
    type=click.Choice(sorted(PAPER_SIZES), case_sensitive=False),
    default=None,
    help="Paper size (default from settings)",
)
@click.option("--title", default=None, help="Override the quiz title")
@click.option("--answer-key/--no-answer-key", default=True, help="Also write the answer key")
@click.option("--page-numbers/--no-page-numbers", default=True, help="Print page numbers")
@click.option("--institution", default=None, help="Institution name printed above the title")
@click.option("--college", default="", help="College or department printed under the institution")
def print_command(
    archive: str,
    output: str,
    paper_size: str | None,
    title: str | None,
    answer_key: bool,
    page_numbers: bool,
    institution: str | None,
    college: str,
) -> None:
    """Render a QTI zip as a printable exam PDF."""
    fields = {"page_numbering": page_numbers, "college": college}
    if institution is not None:
        fields["institution"] = institution
    if paper_size:
        fields["paper_size"] = paper_size
    if title:
        fields["title"] = title
    options = RenderOptions(**fields)

    output_dir = Path(output)
    click.echo(f"📄 Reading {Path(archive).name}")
    try:
        decoded = load_qti(archive)
        click.echo(f"   ✓ Decoded {len(decoded.questions)} questions from \"{decoded.metadata.title}\"")
        _echo_warnings(decoded.warnings)
        options = options_for_quiz(decoded.metadata, options)

        exam = print_exam(decoded.questions, options)
        path = _write(output_dir, exam.filename, exam.document)
        click.echo(f"   ✓ Exam: {path} ({exam.page_count} pages)")
        if answer_key:
            key = print_exam(decoded.questions, options, answer_key=True)
            path = _write(output_dir, key.filename, key.document)
            click.echo(f"   ✓ Answer key: {path} ({key.page_count} pages)")
    except ItemBankError as e:
        _echo_warnings(e.warnings)
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def inspect(file: str) -> None:
    """Print the questions a spreadsheet or QTI zip decodes to, as JSON."""
    try:
        if Path(file).suffix.lower() == ".zip":
            result = load_qti(file)
            payload = {
                "metadata": result.metadata.model_dump(mode="json"),
                "questions": [q.model_dump(mode="json") for q in result.questions],
                "warnings": [w.model_dump(mode="json") for w in result.warnings],
            }
        else:
            built = import_spreadsheet(file)
            payload = {
                "questions": [q.model_dump(mode="json") for q in built.questions],
                "warnings": [w.model_dump(mode="json") for w in built.warnings],
                "skipped": built.skipped,
            }
    except ItemBankError as e:
        raise click.ClickException(str(e)) from e

    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", "-p", type=int, default=8000, help="Port")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    click.echo(f"🚀 Serving API on http://{host}:{port}/api/docs")
    uvicorn.run("api.main:app", host=host, port=port, reload=reload)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
