"""Command-line interface for OpenLedger."""

from datetime import date
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config, ensure_directories, load_config
from .db import Database, Expense, RecurringExpenseRule, TimeEntry
from .errors import LedgerError
from .ledger import (
    InvoiceAssembler,
    InvoiceSequencer,
    RecurringExpenseScheduler,
    TimeLedger,
)
from .ledger.invoices import PaymentDetails
from .ledger.rollup import summarize_ledger
from .logging import configure_logging

# Create Typer app with subcommands
app = typer.Typer(
    name="openledger",
    help="Time tracking, recurring expenses and invoicing.",
    no_args_is_help=True,
)

time_app = typer.Typer(help="Log and manage work hours.")
expenses_app = typer.Typer(help="Manage the expense ledger.")
rules_app = typer.Typer(help="Manage recurring expense rules.")
invoices_app = typer.Typer(help="Create and manage invoices.")
settings_app = typer.Typer(help="Show and edit finance settings.")

app.add_typer(time_app, name="time")
app.add_typer(expenses_app, name="expenses")
app.add_typer(rules_app, name="rules")
app.add_typer(invoices_app, name="invoices")
app.add_typer(settings_app, name="settings")

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file"),
]

STATUS_STYLES = {
    "unbilled": "yellow",
    "billed": "cyan",
    "paid": "green",
    "draft": "white",
    "sent": "yellow",
}


def get_config(config_path: Path | None) -> Config:
    """Load configuration and set up logging."""
    config = load_config(config_path)
    configure_logging(config)
    return config


def get_db(config: Config, evaluate: bool = True) -> Database:
    """Get database connection and ensure it's initialized.

    Due recurring expenses are materialized as the session opens, since
    there is no background scheduler.
    """
    ensure_directories(config)
    db = Database(config.database.path)
    db.initialize(config.billing.settings_seed())
    if evaluate and config.scheduler.evaluate_on_load:
        result = RecurringExpenseScheduler(db).evaluate(date.today())
        if result.created:
            console.print(
                f"[cyan]{len(result.created)} recurring expense(s) recorded "
                f"(${result.total_created:,.2f})[/cyan]"
            )
        for failure in result.errors:
            console.print(
                f"[red]Recurring rule {failure.rule_id} failed: {failure.message}[/red]"
            )
    return db


def fail(error: LedgerError) -> None:
    """Print a ledger error and exit non-zero."""
    console.print(f"[red]{error.message}[/red]")
    raise typer.Exit(1)


def styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"


def parse_item(raw: str) -> dict:
    """Parse a DESCRIPTION:QUANTITY:UNIT_PRICE line item option."""
    parts = raw.rsplit(":", 2)
    if len(parts) != 3:
        raise typer.BadParameter(f"Expected DESCRIPTION:QUANTITY:UNIT_PRICE, got {raw!r}")
    return {"description": parts[0], "quantity": parts[1], "unit_price": parts[2]}


@app.command()
def version():
    """Show version information."""
    console.print(f"openledger version {__version__}")


@app.command()
def init(config_path: ConfigOption = None):
    """Create the database schema and seed settings."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)
    try:
        counter = InvoiceSequencer(db, config.billing).peek()
        console.print(
            f"[green]Ledger ready at {config.database.path} "
            f"(next invoice {counter.format()})[/green]"
        )
    finally:
        db.close()


@app.command()
def evaluate(
    as_of: Annotated[
        Optional[str],
        typer.Option("--as-of", help="Evaluation date (YYYY-MM-DD), default today"),
    ] = None,
    config_path: ConfigOption = None,
):
    """Materialize recurring expenses that are due."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        try:
            when = date.fromisoformat(as_of) if as_of else date.today()
        except ValueError:
            console.print(f"[red]Invalid date: {as_of}[/red]")
            raise typer.Exit(1)

        result = RecurringExpenseScheduler(db).evaluate(when)

        table = Table(title=f"Recurring Expenses - {result.as_of}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Created", str(len(result.created)))
        table.add_row("Amount", f"${result.total_created:,.2f}")
        table.add_row("Not due", str(len(result.skipped)))
        table.add_row("Already recorded", str(len(result.conflicts)))
        table.add_row("Errors", str(len(result.errors)))
        console.print(table)

        for failure in result.errors:
            console.print(f"  [red]rule {failure.rule_id}: {failure.message}[/red]")
        if result.errors:
            raise typer.Exit(1)
    finally:
        db.close()


@app.command()
def summary(
    start: Annotated[Optional[str], typer.Option("--start", help="From date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="To date (YYYY-MM-DD)")] = None,
    config_path: ConfigOption = None,
):
    """Show income, expenses and net profit."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        rollup = summarize_ledger(db, start, end)

        title = "Financial Summary"
        if start or end:
            title += f" ({start or '...'} to {end or '...'})"
        table = Table(title=title)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green", justify="right")
        table.add_row("Income (paid)", f"${rollup.income:,.2f}")
        table.add_row("Outstanding (sent)", f"${rollup.outstanding:,.2f}")
        table.add_row("Expenses", f"${rollup.expenses:,.2f}")
        table.add_row("", "", end_section=True)
        profit_style = "green" if rollup.net_profit >= 0 else "red"
        table.add_row(
            "[bold]Net Profit[/bold]",
            f"[bold {profit_style}]${rollup.net_profit:,.2f}[/bold {profit_style}]",
        )
        console.print(table)

        if rollup.expenses_by_category:
            categories = Table(title="Expenses by Category")
            categories.add_column("Category", style="cyan")
            categories.add_column("Amount", style="green", justify="right")
            for category, amount in rollup.expenses_by_category.items():
                categories.add_row(category, f"${amount:,.2f}")
            console.print(categories)
    finally:
        db.close()


# Time subcommands


@time_app.command("log")
def time_log(
    hours: Annotated[float, typer.Argument(help="Hours worked")],
    description: Annotated[str, typer.Argument(help="What was done")],
    on: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Work date (YYYY-MM-DD), default today"),
    ] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    rate: Annotated[Optional[float], typer.Option("--rate", help="Hourly rate override")] = None,
    non_billable: Annotated[
        bool, typer.Option("--non-billable", help="Exclude from invoicing")
    ] = False,
    config_path: ConfigOption = None,
):
    """Log hours manually."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        entry = TimeLedger(db).log_time(
            TimeEntry(
                id=None,
                date=on or date.today().isoformat(),
                hours=hours,
                description=description,
                billable=not non_billable,
                rate=rate,
                client_reference=client,
            )
        )
        console.print(f"[green]Logged {entry.hours}h on {entry.date} (id={entry.id})[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@time_app.command("list")
def time_list(
    status: Annotated[
        Optional[str],
        typer.Option("--status", "-s", help="unbilled, billed or paid"),
    ] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    unbilled: Annotated[
        bool, typer.Option("--unbilled", help="Only billable, unbilled entries")
    ] = False,
    config_path: ConfigOption = None,
):
    """List time entries, newest first."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        ledger = TimeLedger(db)
        if unbilled:
            entries = ledger.list_unbilled(client)
        else:
            entries = ledger.list_entries(status=status, client_reference=client)

        if not entries:
            console.print("[yellow]No time entries found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Time Entries")
        table.add_column("ID", style="cyan")
        table.add_column("Date", style="white")
        table.add_column("Hours", style="white", justify="right")
        table.add_column("Description", style="white")
        table.add_column("Client", style="white")
        table.add_column("Rate", style="white", justify="right")
        table.add_column("Status", style="white")
        table.add_column("Invoice", style="white")

        for entry in entries:
            table.add_row(
                str(entry.id),
                entry.date,
                f"{entry.hours:.2f}",
                entry.description if entry.billable else f"{entry.description} (non-billable)",
                entry.client_reference or "",
                f"${entry.rate:,.2f}" if entry.rate is not None else "default",
                styled(entry.status),
                str(entry.invoice_id or ""),
            )

        console.print(table)
        console.print(f"\nTotal: {len(entries)} entries, {sum(e.hours for e in entries):.2f}h")
    finally:
        db.close()


@time_app.command("edit")
def time_edit(
    entry_id: Annotated[int, typer.Argument(help="Time entry ID")],
    hours: Annotated[Optional[float], typer.Option("--hours", help="Hours worked")] = None,
    description: Annotated[Optional[str], typer.Option("--description", help="Description")] = None,
    on: Annotated[Optional[str], typer.Option("--date", "-d", help="Work date")] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    rate: Annotated[Optional[float], typer.Option("--rate", help="Hourly rate override")] = None,
    config_path: ConfigOption = None,
):
    """Edit an unbilled time entry."""
    changes = {
        key: value
        for key, value in {
            "hours": hours,
            "description": description,
            "date": on,
            "client_reference": client,
            "rate": rate,
        }.items()
        if value is not None
    }
    config = get_config(config_path)
    db = get_db(config)

    try:
        entry = TimeLedger(db).update_entry(entry_id, **changes)
        console.print(f"[green]Time entry {entry.id} updated[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@time_app.command("delete")
def time_delete(
    entry_id: Annotated[int, typer.Argument(help="Time entry ID")],
    config_path: ConfigOption = None,
):
    """Delete an unbilled time entry."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        TimeLedger(db).delete_entry(entry_id)
        console.print(f"[green]Time entry {entry_id} deleted[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@time_app.command("start")
def time_start(
    description: Annotated[
        Optional[str], typer.Argument(help="What you are working on")
    ] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    config_path: ConfigOption = None,
):
    """Start the timer."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        TimeLedger(db).start_timer(description, client)
        console.print("[green]Timer started[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@time_app.command("stop")
def time_stop(config_path: ConfigOption = None):
    """Stop the timer and log the elapsed time."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        entry = TimeLedger(db).stop_timer()
        console.print(
            f"[green]Logged {entry.hours}h '{entry.description}' (id={entry.id})[/green]"
        )
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


# Expense subcommands


@expenses_app.command("add")
def expenses_add(
    amount: Annotated[float, typer.Argument(help="Amount")],
    description: Annotated[str, typer.Argument(help="Description")],
    category: Annotated[str, typer.Option("--category", help="Category")] = "General",
    on: Annotated[
        Optional[str],
        typer.Option("--date", "-d", help="Expense date (YYYY-MM-DD), default today"),
    ] = None,
    receipt: Annotated[Optional[str], typer.Option("--receipt", help="Receipt reference")] = None,
    config_path: ConfigOption = None,
):
    """Record a one-time expense."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        expense = RecurringExpenseScheduler(db).add_expense(
            Expense(
                id=None,
                date=on or date.today().isoformat(),
                description=description,
                amount=amount,
                category=category,
                receipt_reference=receipt,
            )
        )
        console.print(f"[green]Expense recorded (id={expense.id})[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@expenses_app.command("list")
def expenses_list(
    start: Annotated[Optional[str], typer.Option("--start", help="From date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="To date (YYYY-MM-DD)")] = None,
    config_path: ConfigOption = None,
):
    """List expenses, newest first."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        expenses = RecurringExpenseScheduler(db).list_expenses(start, end)
        if not expenses:
            console.print("[yellow]No expenses found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Expenses")
        table.add_column("ID", style="cyan")
        table.add_column("Date", style="white")
        table.add_column("Description", style="white")
        table.add_column("Category", style="white")
        table.add_column("Amount", style="green", justify="right")
        table.add_column("Rule", style="white")

        for expense in expenses:
            table.add_row(
                str(expense.id),
                expense.date,
                expense.description,
                expense.category,
                f"${expense.amount:,.2f}",
                str(expense.origin_rule_id or ""),
            )

        console.print(table)
        console.print(f"\nTotal: ${sum(e.amount for e in expenses):,.2f}")
    finally:
        db.close()


@expenses_app.command("delete")
def expenses_delete(
    expense_id: Annotated[int, typer.Argument(help="Expense ID")],
    config_path: ConfigOption = None,
):
    """Delete an expense."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        RecurringExpenseScheduler(db).delete_expense(expense_id)
        console.print(f"[green]Expense {expense_id} deleted[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


# Recurring rule subcommands


@rules_app.command("add")
def rules_add(
    amount: Annotated[float, typer.Argument(help="Amount per period")],
    description: Annotated[str, typer.Argument(help="Description")],
    day: Annotated[int, typer.Option("--day", help="Day of month to fire (1-31)")] = 1,
    frequency: Annotated[
        str, typer.Option("--frequency", "-f", help="monthly or yearly")
    ] = "monthly",
    month: Annotated[int, typer.Option("--month", help="Month for yearly rules (1-12)")] = 1,
    category: Annotated[str, typer.Option("--category", help="Category")] = "General",
    config_path: ConfigOption = None,
):
    """Add a recurring expense rule."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        rule = RecurringExpenseScheduler(db).create_rule(
            RecurringExpenseRule(
                id=None,
                description=description,
                amount=amount,
                category=category,
                frequency=frequency,
                day_of_period=day,
                month_of_year=month,
            )
        )
        console.print(
            f"[green]Rule {rule.id} created: {rule.frequency} on day {rule.day_of_period}[/green]"
        )
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@rules_app.command("list")
def rules_list(config_path: ConfigOption = None):
    """List recurring expense rules."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        rules = RecurringExpenseScheduler(db).list_rules()
        if not rules:
            console.print("[yellow]No recurring rules found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Recurring Expense Rules")
        table.add_column("ID", style="cyan")
        table.add_column("Description", style="white")
        table.add_column("Category", style="white")
        table.add_column("Amount", style="green", justify="right")
        table.add_column("Runs", style="white")
        table.add_column("Last Period", style="white")

        for rule in rules:
            if rule.frequency == "yearly":
                runs = f"yearly on {rule.month_of_year:02d}-{rule.day_of_period:02d}"
            else:
                runs = f"monthly on day {rule.day_of_period}"
            table.add_row(
                str(rule.id),
                rule.description,
                rule.category,
                f"${rule.amount:,.2f}",
                runs,
                rule.last_materialized_period or "Never",
            )

        console.print(table)
    finally:
        db.close()


@rules_app.command("delete")
def rules_delete(
    rule_id: Annotated[int, typer.Argument(help="Rule ID")],
    config_path: ConfigOption = None,
):
    """Delete a recurring rule. Expenses it already recorded are kept."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        RecurringExpenseScheduler(db).delete_rule(rule_id)
        console.print(f"[green]Rule {rule_id} deleted[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


# Invoice subcommands


@invoices_app.command("create")
def invoices_create(
    client: Annotated[str, typer.Option("--client", help="Client reference")],
    item: Annotated[
        Optional[list[str]],
        typer.Option("--item", "-i", help="Manual line DESCRIPTION:QUANTITY:UNIT_PRICE"),
    ] = None,
    entry: Annotated[
        Optional[list[int]],
        typer.Option("--entry", "-e", help="Time entry ID to bill"),
    ] = None,
    all_unbilled: Annotated[
        bool,
        typer.Option("--all-unbilled", help="Bill every unbilled entry for the client"),
    ] = False,
    issue_date: Annotated[Optional[str], typer.Option("--issue-date", help="YYYY-MM-DD")] = None,
    due_date: Annotated[Optional[str], typer.Option("--due-date", help="YYYY-MM-DD")] = None,
    status: Annotated[str, typer.Option("--status", help="draft, sent or paid")] = "draft",
    payment_info: Annotated[
        Optional[str], typer.Option("--payment-info", help="Override payment details")
    ] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", "-n", help="Notes")] = None,
    config_path: ConfigOption = None,
):
    """Create an invoice from manual items and unbilled time."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        assembler = InvoiceAssembler(db, config.billing)
        entry_ids = list(entry or [])
        if all_unbilled:
            entry_ids += [e.id for e in assembler.time_ledger.list_unbilled(client)]

        payment = None
        if payment_info is not None:
            settings = db.get_settings()
            payment = PaymentDetails(
                payment_info=payment_info,
                payment_qr_url=settings.payment_qr_url,
            )

        invoice = assembler.create_invoice(
            client_reference=client,
            manual_items=[parse_item(raw) for raw in item or []],
            time_entry_ids=entry_ids,
            issue_date=issue_date,
            due_date=due_date,
            payment_details=payment,
            status=status,
            notes=notes,
        )
        console.print(
            f"[green]Invoice {invoice.number} created: "
            f"{len(invoice.line_items)} lines, ${invoice.total_amount:,.2f}[/green]"
        )
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@invoices_app.command("list")
def invoices_list(
    status: Annotated[
        Optional[str], typer.Option("--status", "-s", help="draft, sent or paid")
    ] = None,
    client: Annotated[Optional[str], typer.Option("--client", help="Client reference")] = None,
    config_path: ConfigOption = None,
):
    """List invoices, newest first."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        invoices = InvoiceAssembler(db, config.billing).list_invoices(status, client)
        if not invoices:
            console.print("[yellow]No invoices found[/yellow]")
            raise typer.Exit(0)

        table = Table(title="Invoices")
        table.add_column("ID", style="cyan")
        table.add_column("Number", style="white")
        table.add_column("Client", style="white")
        table.add_column("Issued", style="white")
        table.add_column("Due", style="white")
        table.add_column("Total", style="green", justify="right")
        table.add_column("Status", style="white")

        for invoice in invoices:
            table.add_row(
                str(invoice.id),
                invoice.number,
                invoice.client_reference,
                invoice.issue_date,
                invoice.due_date,
                f"${invoice.total_amount:,.2f}",
                styled(invoice.status),
            )

        console.print(table)
    finally:
        db.close()


@invoices_app.command("show")
def invoices_show(
    invoice_id: Annotated[int, typer.Argument(help="Invoice ID")],
    config_path: ConfigOption = None,
):
    """Show an invoice with its line items."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        invoice = InvoiceAssembler(db, config.billing).get_invoice(invoice_id)

        table = Table(title=f"{invoice.number} - {invoice.client_reference} ({invoice.status})")
        table.add_column("Description", style="white")
        table.add_column("Qty", style="white", justify="right")
        table.add_column("Unit Price", style="white", justify="right")
        table.add_column("Amount", style="green", justify="right")

        for line in invoice.line_items:
            table.add_row(
                line.description,
                f"{line.quantity:g}",
                f"${line.unit_price:,.2f}",
                f"${line.amount:,.2f}",
            )

        table.add_row("", "", "", "", end_section=True)
        table.add_row("[bold]Total[/bold]", "", "", f"[bold]${invoice.total_amount:,.2f}[/bold]")
        console.print(table)
        console.print(f"Issued {invoice.issue_date}, due {invoice.due_date}")
        if invoice.payment_info:
            console.print(f"Payment: {invoice.payment_info}")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@invoices_app.command("status")
def invoices_status(
    invoice_id: Annotated[int, typer.Argument(help="Invoice ID")],
    new_status: Annotated[str, typer.Argument(help="draft, sent or paid")],
    config_path: ConfigOption = None,
):
    """Change an invoice's status."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        invoice = InvoiceAssembler(db, config.billing).update_status(invoice_id, new_status)
        console.print(f"[green]Invoice {invoice.number} is now {invoice.status}[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


@invoices_app.command("delete")
def invoices_delete(
    invoice_id: Annotated[int, typer.Argument(help="Invoice ID")],
    config_path: ConfigOption = None,
):
    """Delete an invoice and release its time entries."""
    config = get_config(config_path)
    db = get_db(config)

    try:
        released = InvoiceAssembler(db, config.billing).delete_invoice(invoice_id)
        console.print(
            f"[green]Invoice {invoice_id} deleted; "
            f"{released} time entries back to unbilled[/green]"
        )
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


# Settings subcommands


@settings_app.command("show")
def settings_show(config_path: ConfigOption = None):
    """Show finance settings."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        settings = db.get_settings()
        table = Table(title="Finance Settings")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Invoice prefix", settings.invoice_prefix)
        table.add_row("Next invoice", settings.counter.format())
        table.add_row("Default hourly rate", f"${settings.default_hourly_rate:,.2f}")
        table.add_row("Payment info", settings.payment_info or "")
        table.add_row("Payment QR", settings.payment_qr_url or "")
        table.add_row("Business name", settings.business_name or "")
        table.add_row("Footer note", settings.invoice_footer_note or "")
        console.print(table)
    finally:
        db.close()


@settings_app.command("set")
def settings_set(
    prefix: Annotated[Optional[str], typer.Option("--prefix", help="Invoice prefix")] = None,
    rate: Annotated[
        Optional[float], typer.Option("--rate", help="Default hourly rate")
    ] = None,
    payment_info: Annotated[
        Optional[str], typer.Option("--payment-info", help="Payment details")
    ] = None,
    payment_qr_url: Annotated[
        Optional[str], typer.Option("--payment-qr-url", help="Payment QR image URL")
    ] = None,
    business_name: Annotated[
        Optional[str], typer.Option("--business-name", help="Business name")
    ] = None,
    footer: Annotated[Optional[str], typer.Option("--footer", help="Invoice footer note")] = None,
    config_path: ConfigOption = None,
):
    """Edit finance settings."""
    if rate is not None and rate < 0:
        console.print("[red]Rate must be zero or positive[/red]")
        raise typer.Exit(1)

    values = {
        key: value
        for key, value in {
            "invoice_prefix": prefix,
            "default_hourly_rate": rate,
            "payment_info": payment_info,
            "payment_qr_url": payment_qr_url,
            "business_name": business_name,
            "invoice_footer_note": footer,
        }.items()
        if value is not None
    }
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        db.update_settings(**values)
        console.print(f"[green]{len(values)} setting(s) updated[/green]")
    finally:
        db.close()


@settings_app.command("advance-sequence")
def settings_advance_sequence(
    value: Annotated[int, typer.Argument(help="New next invoice number")],
    config_path: ConfigOption = None,
):
    """Move the invoice counter forward. It can never move back."""
    config = get_config(config_path)
    db = get_db(config, evaluate=False)

    try:
        counter = InvoiceSequencer(db, config.billing).advance_to(value)
        console.print(f"[green]Next invoice will be {counter.format()}[/green]")
    except LedgerError as e:
        fail(e)
    finally:
        db.close()


if __name__ == "__main__":
    app()
