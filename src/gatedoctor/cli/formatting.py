"""Rich and JSON rendering of command reports."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any, Final

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from gatedoctor.application.account import WhoamiReport
from gatedoctor.application.catalog import ModelsReport, PricingReport
from gatedoctor.application.diagnostics import CheckName, DiagnosticCheck, DoctorReport
from gatedoctor.application.reporting import CommandFailure, input_error_payload
from gatedoctor.domain.pricing import EstimatedCost
from gatedoctor.infrastructure.errors import InputValidationError, InvalidBaseUrlError

PRICING_NOTE: Final = "pricing is estimated and subject to change"


class RichStyles:
    ACCENT = "cyan"
    SECONDARY = "magenta"
    SUCCESS = "green"
    WARNING = "yellow"
    ERROR = "red"
    DIM = "dim"


_CHECK_LABELS: Final[dict[CheckName, str]] = {
    CheckName.CONNECTIVITY: "/health",
    CheckName.MODELS_LIST: "/v1/models",
    CheckName.CHAT_ROUTE: "/v1/chat/completions",
    CheckName.MODEL_EXISTS: "model",
    CheckName.PRICING: "pricing",
}


def mask_sensitive_value(value: str | None) -> str:
    """Mask a secret, keeping the first and last four characters of long values."""

    if value is None:
        return "<unset>"
    candidate = value.strip()
    if not candidate:
        return "***"
    if len(candidate) <= 8:
        return f"{candidate[0]}***"
    return f"{candidate[:4]}...{candidate[-4:]}"


def format_money(amount: float) -> str:
    return f"${amount:.6f}"


def truncate_middle(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    if limit <= 8:
        return value[:limit]
    head = (limit - 3) // 2
    tail = limit - 3 - head
    return f"{value[:head]}...{value[len(value) - tail:]}"


def print_json_payload(console: Console, payload: Mapping[str, Any]) -> None:
    console.out(json.dumps(payload, indent=2), highlight=False)


def _print_line(console: Console, line: str | Text = "") -> None:
    console.print(line, soft_wrap=True, highlight=False, markup=False)


def _print_warnings(console: Console, warnings: Iterable[str]) -> None:
    items = list(warnings)
    if not items:
        return
    _print_line(console)
    console.print("Warnings:", style=RichStyles.WARNING)
    for warning in items:
        _print_line(console, f"  - {warning}")


def render_input_error(
    exc: InputValidationError,
    *,
    json_output: bool,
    stdout_console: Console,
    stderr_console: Console,
    **extra: Any,
) -> None:
    if json_output:
        print_json_payload(stdout_console, input_error_payload(exc, **extra))
        return
    _print_line(stderr_console, exc.user_message)
    if isinstance(exc, InvalidBaseUrlError) and exc.suggested_base_url:
        _print_line(stderr_console, f"Did you mean: {exc.suggested_base_url}")


def render_failure(failure: CommandFailure, console: Console) -> None:
    for line in failure.human_message.splitlines():
        _print_line(console, line)


def _status_label(check: DiagnosticCheck) -> Text:
    if check.skipped:
        return Text("[SKIP]", style=RichStyles.WARNING)
    if check.ok:
        return Text("[OK  ]", style=RichStyles.SUCCESS)
    return Text("[FAIL]", style=RichStyles.ERROR)


def _check_line(check: DiagnosticCheck) -> Text:
    details = " ".join(
        part
        for part in (
            f"({check.http_status})" if check.http_status is not None else "",
            f"{check.elapsed_ms}ms" if check.elapsed_ms is not None else "",
        )
        if part
    )
    line = Text.assemble(_status_label(check), " ", _CHECK_LABELS[check.name].ljust(14))
    if details:
        line.append(f" {details}")
    if check.hint:
        line.append(f" - {check.hint}")
    return line


def _render_estimate(console: Console, estimated: EstimatedCost) -> None:
    _print_line(console)
    _print_line(console, f"Estimated cost per 1M tokens (USD) - {estimated.model}")
    _print_line(console, f"  network:   {format_money(estimated.network)}")
    _print_line(console, f"  fee ({estimated.fee_percent}%): {format_money(estimated.platform_fee)}")
    _print_line(console, f"  total:     {format_money(estimated.total)}")
    if estimated.updated_at:
        _print_line(console, f"  updatedAt: {estimated.updated_at}")
    _print_line(console, f"  note: {PRICING_NOTE}")


def render_doctor_report(report: DoctorReport, console: Console, *, verbose: bool = False) -> None:
    console.print("Gateway Doctor", style="bold")
    _print_line(console, f"Base URL: {report.base_url}")
    _print_warnings(console, report.warnings)
    _print_line(console)

    for check in report.checks:
        console.print(_check_line(check), soft_wrap=True, highlight=False)
        if verbose and check.correlation_id:
            _print_line(console, f"         requestId: {check.correlation_id}")
        if check.name is CheckName.MODEL_EXISTS and check.failed and check.suggestions:
            _print_line(console, f"         suggestions: {', '.join(check.suggestions)}")

    if report.estimated_cost is not None:
        _render_estimate(console, report.estimated_cost)

    if report.next_hints:
        _print_line(console)
        console.print("Next:", style="bold")
        for hint in report.next_hints:
            _print_line(console, f"  - {hint}")


def _price_cell(estimated: EstimatedCost | None, attribute: str) -> str:
    if estimated is None:
        return "n/a"
    return format_money(getattr(estimated, attribute))


def render_models_report(report: ModelsReport, console: Console, *, verbose: bool = False) -> None:
    console.print("Gateway Models", style="bold")
    _print_line(console, f"Base URL: {report.base_url}")
    _print_warnings(console, report.warnings)
    _print_line(console)

    index = report.pricing_index
    if index is not None and index.updated_at:
        _print_line(console, f"Pricing updatedAt: {index.updated_at}")
        _print_line(console)

    table = Table(box=box.SIMPLE, show_edge=False)
    table.add_column("model", style=RichStyles.ACCENT, overflow="fold")
    table.add_column("network/1M", justify="right")
    table.add_column("fee/1M", justify="right")
    table.add_column("total/1M", justify="right")
    for entry in report.entries:
        model_cell = truncate_middle(entry.info.id, 60)
        if verbose and entry.info.name:
            model_cell = f"{model_cell}\nname: {entry.info.name}"
        table.add_row(
            model_cell,
            _price_cell(entry.pricing, "network_usd_per_1m"),
            _price_cell(entry.pricing, "platform_usd_per_1m"),
            _price_cell(entry.pricing, "total_usd_per_1m"),
        )
    console.print(table)

    if report.pricing_problem:
        _print_line(console)
        console.print("Pricing:", style=RichStyles.WARNING)
        _print_line(console, f"  - {report.pricing_problem}")

    if index is not None:
        _print_line(console)
        _print_line(console, f"Note: {PRICING_NOTE}.")


def render_pricing_report(report: PricingReport, console: Console) -> None:
    estimated = report.estimated
    if estimated is None:
        return
    console.print("Gateway Pricing", style="bold")
    _print_line(console, f"Base URL: {report.base_url}")
    _print_line(console)
    _print_line(console, f"Model: {report.model}")
    _print_line(console, f"  network:     {format_money(estimated.network)} per 1M tokens")
    _print_line(
        console,
        f"  fee ({estimated.fee_percent}%):   {format_money(estimated.platform_fee)} per 1M tokens",
    )
    _print_line(console, f"  total:       {format_money(estimated.total)} per 1M tokens")
    if estimated.updated_at:
        _print_line(console, f"  updatedAt:   {estimated.updated_at}")
    _print_line(console, f"  note: {PRICING_NOTE}")


def render_whoami_report(report: WhoamiReport, console: Console, *, verbose: bool = False) -> None:
    data = report.data
    if data is None:
        return
    console.print("Gateway WhoAmI", style="bold")
    _print_line(console, f"Base URL: {report.base_url}")
    _print_line(console)
    verified = " (verified)" if data.user.email_verified else ""
    _print_line(console, f"User: {data.user.email_masked}{verified}")
    _print_line(console)
    key = data.api_key
    _print_line(console, f"API key: {key.name or '(unnamed)'}")
    _print_line(console, f"  key:     {key.masked_key}")
    _print_line(console, f"  status:  {key.status}")
    _print_line(console, f"  expires: {key.expires_at or 'never'}")
    _print_line(console, f"  lastUsed: {key.last_used or 'never'}")
    _print_line(console)
    _print_line(console, f"Balance: ${data.balance.usd} ({data.balance.status})")
    if verbose and report.correlation_id:
        _print_line(console, f"requestId: {report.correlation_id}")


def render_request_id(
    console: Console, request_id: str | None, *, verbose: bool
) -> None:
    if verbose and request_id:
        _print_line(console, f"requestId: {request_id}")


def create_config_table(title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("Key", style=RichStyles.ACCENT)
    table.add_column("Value", overflow="fold")
    table.add_column("Source", style=RichStyles.SECONDARY)
    return table


def format_config_value(key: str, value: Any, *, secret_keys: Iterable[str] = ()) -> str:
    if key in set(secret_keys):
        return mask_sensitive_value(value if isinstance(value, str) else None)
    if value is None:
        return "<unset>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


__all__ = [
    "PRICING_NOTE",
    "RichStyles",
    "create_config_table",
    "format_config_value",
    "format_money",
    "mask_sensitive_value",
    "print_json_payload",
    "render_doctor_report",
    "render_failure",
    "render_input_error",
    "render_models_report",
    "render_pricing_report",
    "render_request_id",
    "render_whoami_report",
    "truncate_middle",
]
