"""Command-line interface for the file forensic analyzer."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from file_forensic import __version__
from file_forensic.analysis.identifier import FileIdentifier
from file_forensic.analysis.payloads import PayloadHunter
from file_forensic.analysis.polyglot import PolyglotDetector
from file_forensic.analysis.steganography import SteganographyDetector
from file_forensic.analysis.thresholds import load_thresholds, thresholds_from_env
from file_forensic.core.analyzer import ForensicAnalyzer
from file_forensic.output.hex_dump import HexDumpFormatter
from file_forensic.output.json_export import JSONExporter
from file_forensic.parsers.signatures import SIGNATURES
from file_forensic.utils.exceptions import FileForensicError, FileReadError

console = Console()

RISK_COLORS = {
    "safe": "green",
    "low": "green",
    "medium": "yellow",
    "high": "red",
    "critical": "red bold",
}

HEADER_DUMP_BYTES = 64
PAYLOAD_DUMP_BYTES = 32


def print_status(status: str, message: str) -> None:
    """Print a status message with consistent formatting.

    Args:
        status: Status indicator ([OK], [FAIL], [WARN], [INFO], [ERROR])
        message: Message to display
    """
    color_map = {
        "[OK]": "green",
        "[FAIL]": "red",
        "[WARN]": "yellow",
        "[INFO]": "blue",
        "[ERROR]": "red bold",
    }
    color = color_map.get(status, "white")
    console.print(f"[{color}]{status}[/{color}] {message}")


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _read_buffer(filepath: str) -> bytes:
    path = Path(filepath)
    try:
        return path.read_bytes()
    except OSError as e:
        raise FileReadError(str(path), str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="file-forensic")
def main():
    """File Forensic - static forensic analysis of arbitrary files.

    Identify a file's true type, detect hidden data, polyglot constructions
    and embedded payloads, and score the evidence into a threat level.
    """


def _create_progress_callback(verbose: int):
    """Create a progress callback for the analyzer.

    Args:
        verbose: Verbosity level (0=quiet, 1=normal, 2+=detailed)

    Returns:
        Callback function for progress updates
    """
    step_names = {
        "file_info": "File Information",
        "identify": "Type Identification",
        "entropy": "Entropy Baseline",
        "structure": "Structure Scan",
        "steganography": "Steganography",
        "polyglot": "Polyglot Check",
        "payloads": "Payload Hunt",
        "score": "Threat Score",
    }

    def callback(step: str, status: str, message: str) -> None:
        step_name = step_names.get(step, step)
        # Inspector failures are always shown
        if status == "error":
            console.print(f"  [red][FAIL][/red] {step_name}: {escape(message)}")
            return
        if verbose < 1:
            return
        if status == "start":
            if verbose >= 2:
                console.print(f"  [dim][...] {step_name}[/dim]")
        elif status == "complete":
            console.print(f"  [green][OK][/green] {step_name}: {escape(message)}")

    return callback


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", help="Output file path for JSON report")
@click.option("-f", "--format", "output_format", type=click.Choice(["json", "table"]), default="table")
@click.option("-v", "--verbose", count=True, help="Verbosity level")
@click.option(
    "--thresholds",
    "thresholds_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML/JSON file overriding detection thresholds",
)
def analyze(filepath: str, output: str, output_format: str, verbose: int, thresholds_path: str):
    """Perform full forensic analysis on a file.

    FILEPATH is the path to the file to analyze.
    """
    _configure_logging(verbose)
    file_path = Path(filepath)

    try:
        if thresholds_path:
            thresholds = load_thresholds(thresholds_path)
        else:
            thresholds = thresholds_from_env()

        quiet = output_format == "json" and not output
        analyzer = ForensicAnalyzer(
            thresholds=thresholds,
            progress_callback=None if quiet else _create_progress_callback(verbose),
        )
        if not quiet:
            console.print(Panel(f"[bold]File Forensic Analysis[/bold]\nFile: {escape(file_path.name)}", style="blue"))
        report = analyzer.analyze(file_path)

        if output_format == "json" or output:
            exporter = JSONExporter(indent=2)
            if output:
                exporter.to_file(report, output)
                print_status("[OK]", f"Report saved to: {output}")
            else:
                click.echo(exporter.to_json(report))
        else:
            _print_report(report, _read_buffer(filepath) if verbose >= 2 else None, verbose)

    except FileForensicError as e:
        print_status("[ERROR]", escape(str(e)))
        sys.exit(1)


def _print_report(report, data, verbose: int) -> None:
    """Print a forensic report as formatted tables."""
    info = report.file_info
    ident = report.identification

    table = Table(title="File Information", show_header=True, header_style="bold")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Filename", escape(info.filename))
    table.add_row("SHA-256", info.sha256 if verbose else info.sha256[:16] + "...")
    table.add_row("MD5", info.md5)
    table.add_row("Size", f"{info.file_size_bytes:,} bytes")
    table.add_row("Entropy", f"{info.entropy:.3f} ({report.entropy.status.value})")
    console.print(table)
    console.print()

    _print_identification(ident)

    if report.steganography.detected:
        _print_steganography(report.steganography)
    if report.polyglot.is_polyglot:
        _print_polyglot(report.polyglot)
    if report.payloads.found_payloads:
        _print_payloads(report.payloads, data)

    if report.structure.apis:
        print_status("[WARN]", f"Suspicious patterns: {escape(', '.join(report.structure.apis))}")
    for error in report.analysis_errors:
        print_status("[FAIL]", f"{error['operation']} inspector failed: {escape(error['error_message'])}")

    if verbose and data is not None:
        console.print(Panel(
            escape(HexDumpFormatter().format_bytes(data[:HEADER_DUMP_BYTES])),
            title="Header Bytes",
        ))

    score = report.combined_score
    color = RISK_COLORS.get(score.risk_level.value, "white")
    body = [f"[{color}]Risk Level: {score.risk_level.value.upper()}[/{color}] "
            f"({score.normalized_score:.0f}/100)"]
    if verbose:
        body.append("")
        body.append(escape(score.explanation))
    body.append("")
    body.extend(report.recommendations)
    console.print(Panel("\n".join(body), title="Threat Assessment", style="bold"))


def _print_identification(ident) -> None:
    table = Table(title="Identification", show_header=True, header_style="bold")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Type", f"{ident.identified_type} ({ident.human_description})")
    table.add_row("MIME", ident.mime_type)
    table.add_row("Category", ident.category.value)
    table.add_row("Confidence", f"{ident.confidence:.1f}%")
    if ident.container_info is not None:
        container = ident.container_info
        brand = container.major_brand or "-"
        table.add_row("Container", f"{container.container} (brand: {escape(brand)})")
    if ident.claimed_extension:
        mismatch = "[red]MISMATCH[/red]" if ident.extension_mismatch else "[green]match[/green]"
        table.add_row("Extension", f".{escape(ident.claimed_extension)} {mismatch}")
    console.print(table)
    for note in ident.security_notes:
        print_status("[WARN]", escape(note))
    console.print()


def _print_steganography(result) -> None:
    table = Table(title="Steganography", show_header=True, header_style="bold")
    table.add_column("Technique", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Description")
    for technique in result.techniques:
        table.add_row(technique.name, f"{technique.confidence}%", escape(technique.description))
    console.print(table)
    if result.extracted_data is not None:
        for message in result.extracted_data.text_messages:
            print_status("[INFO]", f"Recovered text: {escape(message[:200])}")
    console.print()


def _print_polyglot(result) -> None:
    color = RISK_COLORS.get(result.security_risk.value, "white")
    console.print(Panel(
        f"Valid as: {', '.join(result.valid_formats)}\n"
        f"[{color}]Risk: {result.security_risk.value.upper()}[/{color}]\n\n"
        f"{escape(result.description)}",
        title="Polyglot",
    ))


def _print_payloads(analysis, data=None) -> None:
    table = Table(title="Embedded Payloads", show_header=True, header_style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Offset", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Analysis")
    for payload in analysis.found_payloads:
        table.add_row(
            payload.payload_type.value,
            f"0x{payload.offset:X}",
            f"{payload.size:,}",
            f"{payload.confidence}%",
            escape(payload.analysis),
        )
    console.print(table)
    print_status("[INFO]", escape(analysis.summary))

    if data is not None:
        formatter = HexDumpFormatter()
        for payload in analysis.found_payloads:
            dump = formatter.format_region(data, payload.offset, min(payload.size, PAYLOAD_DUMP_BYTES))
            console.print(f"[dim]{payload.payload_type.value} @ 0x{payload.offset:X}[/dim]")
            console.print(escape(dump))
    console.print()


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("-f", "--format", "output_format", type=click.Choice(["json", "table"]), default="table")
def identify(filepath: str, output_format: str):
    """Identify the true type of a file.

    FILEPATH is the path to the file.
    """
    try:
        data = _read_buffer(filepath)
        result = FileIdentifier().identify(data, Path(filepath).name)
        if output_format == "json":
            click.echo(result.model_dump_json(indent=2))
        else:
            _print_identification(result)
    except FileForensicError as e:
        print_status("[ERROR]", escape(str(e)))
        sys.exit(1)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("-f", "--format", "output_format", type=click.Choice(["json", "table"]), default="table")
def stego(filepath: str, output_format: str):
    """Check a file for hidden data.

    FILEPATH is the path to the file.
    """
    try:
        data = _read_buffer(filepath)
        file_type = FileIdentifier().identify(data, Path(filepath).name).identified_type
        result = SteganographyDetector(file_type, thresholds_from_env()).detect(data)
        if output_format == "json":
            click.echo(result.model_dump_json(indent=2))
        elif result.detected:
            _print_steganography(result)
        else:
            print_status("[OK]", result.analysis)
    except FileForensicError as e:
        print_status("[ERROR]", escape(str(e)))
        sys.exit(1)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("-f", "--format", "output_format", type=click.Choice(["json", "table"]), default="table")
def polyglot(filepath: str, output_format: str):
    """Check whether a file is valid as several formats at once.

    FILEPATH is the path to the file.
    """
    try:
        result = PolyglotDetector().detect(_read_buffer(filepath))
        if output_format == "json":
            click.echo(result.model_dump_json(indent=2))
        elif result.is_polyglot:
            _print_polyglot(result)
        else:
            print_status("[OK]", result.description)
    except FileForensicError as e:
        print_status("[ERROR]", escape(str(e)))
        sys.exit(1)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, dir_okay=False))
@click.option("-f", "--format", "output_format", type=click.Choice(["json", "table"]), default="table")
@click.option("--dump", is_flag=True, help="Hex dump the start of each payload")
def payloads(filepath: str, output_format: str, dump: bool):
    """Hunt for embedded payloads in a file.

    FILEPATH is the path to the file.
    """
    try:
        data = _read_buffer(filepath)
        file_type = FileIdentifier().identify(data, Path(filepath).name).identified_type
        result = PayloadHunter(file_type, thresholds_from_env()).hunt(data)
        if output_format == "json":
            click.echo(result.model_dump_json(indent=2))
        elif result.found_payloads:
            _print_payloads(result, data if dump else None)
        else:
            print_status("[OK]", result.summary)
    except FileForensicError as e:
        print_status("[ERROR]", escape(str(e)))
        sys.exit(1)


@main.command()
def signatures():
    """List the magic-byte signature table."""
    table = Table(title="Signatures", show_header=True, header_style="bold")
    table.add_column("Pattern", style="cyan")
    table.add_column("Offset", justify="right")
    table.add_column("Type")
    table.add_column("MIME")
    table.add_column("Confidence", justify="right")
    for entry in SIGNATURES:
        pattern = entry.signature if entry.mask is None else f"{entry.signature}/{entry.mask}"
        table.add_row(pattern, str(entry.offset), entry.file_type, entry.mime_type, str(entry.confidence))
    console.print(table)


@main.command()
def info():
    """Display tool information and capabilities."""
    console.print(Panel(
        f"[bold]File Forensic v{__version__}[/bold]\n\n"
        "Static forensic analysis of arbitrary files\n\n"
        "[bold]Identification:[/bold]\n"
        "  [*] Magic-byte signatures with offsets and masks\n"
        "  [*] ISOBMFF brand and RIFF form resolution\n"
        "  [*] Extension mismatch severity\n\n"
        "[bold]Content Inspection:[/bold]\n"
        "  [*] Entropy baselines per format\n"
        "  [*] JPEG/PNG steganography and LSB message recovery\n"
        "  [*] Polyglot detection with risk tiers\n"
        "  [*] Shellcode, base64, embedded PE, encrypted blob and script hunting\n\n"
        "[bold]Scoring:[/bold]\n"
        "  [*] Evidence-weighted threat score (SAFE to CRITICAL)\n"
        "  [*] Tunable thresholds via YAML/JSON\n\n"
        "[dim]No file is ever executed[/dim]",
        title="About",
        style="blue",
    ))


if __name__ == "__main__":
    main()
