"""
Console reporter for validation results.
"""

from rich.console import Console
from rich.table import Table

from pigmentrf.validation.core import ValidationResult

STATUS_MARKUP = {
    "missing": "[yellow]Missing[/yellow]",
    "pass": "[green]Pass[/green]",
    "fail": "[red]Fail[/red]",
}


def result_status(result: ValidationResult) -> str:
    """Classify a result as 'missing', 'pass' or 'fail'."""
    if not result.exists:
        return "missing"
    return "pass" if result.schema_valid else "fail"


class ConsoleReporter:
    """Prints validation results as a Rich table followed by error details."""

    def __init__(self, console: Console) -> None:
        """
        Initialize console reporter.

        Args:
            console: Rich Console instance for output.
        """
        self.console = console

    def print_results(self, results: list[ValidationResult]) -> None:
        """
        Print validation results.

        Args:
            results: Validation results to display.
        """
        table = Table(title="Input Validation Results", show_header=True)
        table.add_column("Table", style="cyan", no_wrap=True)
        table.add_column("Schema", style="blue")
        table.add_column("Status", justify="center")
        table.add_column("Rows", justify="right")
        table.add_column("File", style="dim")

        for result in results:
            table.add_row(
                result.dataset_name,
                result.schema_name or "-",
                STATUS_MARKUP[result_status(result)],
                str(result.row_count) if result.row_count is not None else "-",
                str(result.file_path),
            )
        self.console.print(table)

        statuses = [result_status(r) for r in results]
        self.console.print(
            f"[bold]Summary:[/bold] {statuses.count('pass')} passed, "
            f"{statuses.count('fail')} failed, {statuses.count('missing')} missing"
        )

        for result in results:
            if result_status(result) == "pass" or not result.error_message:
                continue
            self.console.print()
            self.console.print(f"[bold red]{result.dataset_name}[/bold red]: {result.file_path}")
            for line in result.error_message.split("\n"):
                self.console.print(f"  {line}")

    @staticmethod
    def has_failures(results: list[ValidationResult]) -> bool:
        """Whether any table is missing or invalid."""
        return any(result_status(r) != "pass" for r in results)
