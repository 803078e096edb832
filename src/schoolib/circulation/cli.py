"""Command-line interface for the school library.

Built with Typer for commands and Rich for output.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import get_config
from .db import BorrowerCategory, LoanStatus, get_db
from .errors import CirculationError, NoAvailableCopy

# Create the main app
app = typer.Typer(
    name="schoolib",
    help="School library circulation: copies, loans and overdue notices.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
title_app = typer.Typer(help="Manage catalog titles and copy codes.")
app.add_typer(title_app, name="title")

student_app = typer.Typer(help="Manage registered students.")
app.add_typer(student_app, name="student")

staff_app = typer.Typer(help="Manage registered staff.")
app.add_typer(staff_app, name="staff")

loans_app = typer.Typer(help="List, return, cancel and renew loans.")
app.add_typer(loans_app, name="loans")

notifications_app = typer.Typer(help="Overdue notification feed.")
app.add_typer(notifications_app, name="notifications")

# Rich console for pretty output
console = Console()


@app.callback()
def configure() -> None:
    """Set up logging and check settings before any command runs."""
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )

    problems = config.validate()
    if problems:
        for problem in problems:
            print_error(problem)
        raise typer.Exit(1)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def _category(staff: bool) -> BorrowerCategory:
    return BorrowerCategory.STAFF if staff else BorrowerCategory.STUDENT


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


# ============================================================================
# Title Commands
# ============================================================================


@title_app.command("add")
def title_add(
    name: str = typer.Option(..., "--name", "-n", help="Title name"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author"),
    code: Optional[list[str]] = typer.Option(None, "--code", "-c", help="Copy code (repeatable)"),
) -> None:
    """Add a title to the catalog."""
    from .catalog import CatalogManager, TitleCreate

    manager = CatalogManager(get_db())
    try:
        title = manager.create_title(TitleCreate(name=name, author=author, codes=code or []))
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Added: {title.name}")
    console.print(f"[dim]ID: {title.id}[/dim]")


@title_app.command("list")
def title_list(
    available: bool = typer.Option(False, "--available", "-a", help="Only titles with a free copy"),
) -> None:
    """List catalog titles with copy availability."""
    from .catalog import CatalogManager
    from .lending import AvailabilityResolver

    db = get_db()
    resolver = AvailabilityResolver(db)

    if available:
        rows = [
            (t.id, t.name, t.author, t.total_codes, t.available_count)
            for t in resolver.list_checkout_eligible()
        ]
    else:
        rows = []
        for title in CatalogManager(db).list_titles():
            codes = title.get_codes()
            free = resolver.compute_available(title.id)
            rows.append((title.id, title.name, title.author, len(codes), len(free)))

    if not rows:
        console.print("[dim]No titles found[/dim]")
        return

    table = Table(title="Titles", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Copies", justify="right")
    table.add_column("Available", justify="right")

    for title_id, name, author, total, free in rows:
        free_str = f"[green]{free}[/green]" if free else "[red]0[/red]"
        table.add_row(title_id[:8], name, author or "-", str(total), free_str)

    console.print(table)


@title_app.command("codes")
def title_codes(
    title_id: str = typer.Argument(..., help="Title ID"),
) -> None:
    """Show each copy code of a title and who holds it."""
    from .lending import AvailabilityResolver

    try:
        snapshot = AvailabilityResolver(get_db()).resolve(title_id)
    except CirculationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not len(snapshot.codes):
        console.print("[dim]This title has no copy codes[/dim]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Code", style="cyan")
    table.add_column("Status")
    table.add_column("Borrower")
    table.add_column("Due")

    for code in snapshot.codes:
        loan = snapshot.holders.get(code)
        if loan is None:
            table.add_row(code, "[green]available[/green]", "-", "-")
        else:
            table.add_row(
                code,
                "[yellow]on loan[/yellow]",
                f"{loan.borrower_category.value} {loan.borrower_id[:8]}",
                _format_date(loan.due_at),
            )

    console.print(table)
    for issue in snapshot.issues:
        print_warning(f"{issue.message} ({', '.join(issue.loan_ids)})")


@title_app.command("add-code")
def title_add_code(
    title_id: str = typer.Argument(..., help="Title ID"),
    code: str = typer.Argument(..., help="Copy code"),
) -> None:
    """Add a copy code to a title."""
    from .catalog import CatalogManager

    try:
        CatalogManager(get_db()).add_code(title_id, code)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Added copy {code}")


@title_app.command("remove-code")
def title_remove_code(
    title_id: str = typer.Argument(..., help="Title ID"),
    code: str = typer.Argument(..., help="Copy code"),
) -> None:
    """Remove a copy code that is not on loan."""
    from .catalog import CatalogManager

    try:
        CatalogManager(get_db()).remove_code(title_id, code)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Removed copy {code}")


@title_app.command("generate-codes")
def title_generate_codes(
    title_id: str = typer.Argument(..., help="Title ID"),
    count: int = typer.Option(1, "--count", "-n", help="Number of codes"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Code prefix"),
) -> None:
    """Generate copy codes for a title."""
    from .catalog import CatalogManager

    try:
        codes = CatalogManager(get_db()).generate_codes(title_id, count=count, prefix=prefix)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Generated {len(codes)} code(s): {', '.join(codes)}")


# ============================================================================
# Borrower Commands
# ============================================================================


@student_app.command("add")
def student_add(
    name: str = typer.Option(..., "--name", "-n", help="Student name"),
    class_name: Optional[str] = typer.Option(None, "--class", "-c", help="Class"),
    guardian: Optional[str] = typer.Option(None, "--guardian", "-g", help="Guardian contact"),
) -> None:
    """Register a student."""
    from .registry import RegistryManager, StudentCreate

    student = RegistryManager(get_db()).create_student(
        StudentCreate(name=name, class_name=class_name, guardian_contact=guardian)
    )
    print_success(f"Registered student {student.name}")
    console.print(f"[dim]ID: {student.id}[/dim]")


@student_app.command("list")
def student_list(
    class_name: Optional[str] = typer.Option(None, "--class", "-c", help="Filter by class"),
) -> None:
    """List students."""
    from .registry import RegistryManager

    manager = RegistryManager(get_db())
    students = manager.list_students(class_name=class_name)
    if not students:
        console.print("[dim]No students found[/dim]")
        return

    table = Table(title="Students", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Name", style="cyan")
    table.add_column("Class")
    table.add_column("Open loans", justify="right")

    for s in students:
        count = manager.open_loan_count(s.id, BorrowerCategory.STUDENT)
        table.add_row(s.id[:8], s.name, s.class_name or "-", str(count))

    console.print(table)


@staff_app.command("add")
def staff_add(
    name: str = typer.Option(..., "--name", "-n", help="Staff member name"),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Role"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email"),
) -> None:
    """Register a staff member."""
    from .registry import RegistryManager, StaffCreate

    member = RegistryManager(get_db()).create_staff(
        StaffCreate(name=name, role=role, email=email)
    )
    print_success(f"Registered staff member {member.name}")
    console.print(f"[dim]ID: {member.id}[/dim]")


@staff_app.command("list")
def staff_list() -> None:
    """List staff members."""
    from .registry import RegistryManager

    manager = RegistryManager(get_db())
    members = manager.list_staff()
    if not members:
        console.print("[dim]No staff found[/dim]")
        return

    table = Table(title="Staff", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Name", style="cyan")
    table.add_column("Role")
    table.add_column("Open loans", justify="right")

    for m in members:
        count = manager.open_loan_count(m.id, BorrowerCategory.STAFF)
        table.add_row(m.id[:8], m.name, m.role or "-", str(count))

    console.print(table)


# ============================================================================
# Loan Commands
# ============================================================================


@app.command("checkout")
def checkout(
    title_id: str = typer.Argument(..., help="Title ID"),
    borrower_id: str = typer.Argument(..., help="Student or staff ID"),
    staff: bool = typer.Option(False, "--staff", "-s", help="Borrower is a staff member"),
    code: Optional[str] = typer.Option(None, "--code", "-c", help="Specific copy to lend"),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore the per-borrower loan limit"),
) -> None:
    """Lend a copy of a title."""
    from .lending import CheckoutCoordinator
    from .registry import RegistryManager

    db = get_db()
    config = get_config()
    category = _category(staff)

    if not force:
        count = RegistryManager(db).open_loan_count(borrower_id, category)
        if count >= config.max_loans_per_borrower:
            print_error(
                f"Borrower already has {count} open loan(s) "
                f"(limit {config.max_loans_per_borrower}). Use --force to override."
            )
            raise typer.Exit(1)

    try:
        loan = CheckoutCoordinator(db, config).checkout(
            title_id, borrower_id, category, preferred_code=code
        )
    except NoAvailableCopy as e:
        print_error(str(e))
        if e.code is None:
            console.print("[dim]All copies are on loan. Try again after a return.[/dim]")
        raise typer.Exit(1)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Lent copy {loan.copy_code}")
    console.print(f"[dim]Loan ID: {loan.id}[/dim]")
    console.print(f"[dim]Due: {_format_date(loan.due_at)}[/dim]")


@loans_app.command("return")
def loans_return(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    progress: Optional[int] = typer.Option(None, "--progress", "-p", help="Reading progress (%)"),
    completed: Optional[bool] = typer.Option(
        None, "--completed/--not-completed", help="Whether the book was finished"
    ),
) -> None:
    """Mark a loan as returned."""
    from .lending import LoanLifecycle, ReadingCompletion

    try:
        completion = None
        if progress is not None or completed is not None:
            completion = ReadingCompletion(reading_progress=progress, completed=completed)
        loan = LoanLifecycle(get_db()).return_loan(loan_id, completion=completion)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Copy {loan.copy_code or '-'} returned")


@loans_app.command("cancel")
def loans_cancel(
    loan_id: str = typer.Argument(..., help="Loan ID"),
) -> None:
    """Cancel a loan made by mistake."""
    from .lending import LoanLifecycle

    try:
        loan = LoanLifecycle(get_db()).cancel(loan_id)
    except CirculationError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Loan cancelled, copy {loan.copy_code or '-'} is available again")


@loans_app.command("renew")
def loans_renew(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Days from today"),
    due: Optional[str] = typer.Option(None, "--due", help="New due date (YYYY-MM-DD)"),
) -> None:
    """Extend a loan's due date."""
    from .lending import LoanLifecycle

    now = datetime.now(timezone.utc)
    try:
        if due:
            new_due = datetime.fromisoformat(due).replace(tzinfo=timezone.utc)
        else:
            new_due = now + timedelta(days=days or get_config().loan_duration_days)
        loan = LoanLifecycle(get_db()).renew(loan_id, new_due, now=now)
    except (CirculationError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Loan renewed until {_format_date(loan.due_at)}")


@loans_app.command("list")
def loans_list(
    staff: bool = typer.Option(False, "--staff", help="Only staff loans"),
    student: bool = typer.Option(False, "--student", help="Only student loans"),
    open_only: bool = typer.Option(False, "--open", "-o", help="Only open loans"),
    overdue: bool = typer.Option(False, "--overdue", help="Only overdue loans"),
) -> None:
    """List loan records."""
    from .lending import Ledgers

    ledgers = Ledgers(get_db())
    if staff and not student:
        selected = [ledgers.staff]
    elif student and not staff:
        selected = [ledgers.student]
    else:
        selected = list(ledgers)

    now = datetime.now(timezone.utc)
    status = LoanStatus.OPEN if (open_only or overdue) else None
    loans = []
    for ledger in selected:
        loans.extend(ledger.list_loans(status=status))
    if overdue:
        loans = [loan for loan in loans if loan.is_overdue(now)]

    if not loans:
        console.print("[dim]No loans found[/dim]")
        return

    table = Table(title="Loans", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", max_width=8)
    table.add_column("Type")
    table.add_column("Copy", style="cyan")
    table.add_column("Borrower", max_width=8)
    table.add_column("Due")
    table.add_column("Status")

    for loan in sorted(loans, key=lambda loan: loan.opened_at, reverse=True):
        type_badge = (
            "[blue]STAFF[/blue]"
            if loan.borrower_category == BorrowerCategory.STAFF
            else "[yellow]STUDENT[/yellow]"
        )
        if loan.is_overdue(now):
            status_str = f"[bold red]OVERDUE ({loan.days_overdue(now)}d)[/bold red]"
        elif loan.is_open:
            status_str = "[green]open[/green]"
        else:
            status_str = f"[dim]{loan.status.value}[/dim]"

        table.add_row(
            loan.id[:8],
            type_badge,
            loan.copy_code or "-",
            loan.borrower_id[:8],
            _format_date(loan.due_at),
            status_str,
        )

    console.print(table)


@loans_app.command("recalculate")
def loans_recalculate(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Loan duration (default: configured)"),
) -> None:
    """Re-derive due dates of open loans from a loan duration."""
    from .lending import LoanLifecycle

    duration = days or get_config().loan_duration_days
    try:
        updated = LoanLifecycle(get_db()).recalculate_due_dates(duration)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Updated {updated} open loan(s) to a {duration}-day duration")


@loans_app.command("purge")
def loans_purge(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Delete returned loan records."""
    from .lending import LoanLifecycle

    if not force:
        if not typer.confirm("This permanently deletes all returned loans. Continue?"):
            return

    removed = LoanLifecycle(get_db()).purge_returned()
    print_success(f"Purged {removed} returned loan(s)")


# ============================================================================
# Notification Commands
# ============================================================================


@notifications_app.command("list")
def notifications_list(
    user: str = typer.Option("librarian", "--user", "-u", help="Feed owner"),
    unread: bool = typer.Option(False, "--unread", help="Only unread notifications"),
) -> None:
    """Show the overdue notification feed."""
    from .notifications import NotificationType, OverdueNotifier

    config = get_config()
    if not config.enable_notifications:
        console.print("[dim]Notifications are disabled[/dim]")
        return

    feed = OverdueNotifier(get_db(), config).scan(user)
    if unread:
        feed = [n for n in feed if not n.read]

    if not feed:
        print_success("No overdue loans!")
        return

    unread_count = sum(1 for n in feed if not n.read)
    console.print(Panel(
        f"[bold red]Notifications: {len(feed)}[/bold red] ({unread_count} unread)",
        style="red",
    ))

    table = Table(show_header=True, header_style="bold red")
    table.add_column("ID", style="dim")
    table.add_column("Notification", style="cyan")
    table.add_column("Days Overdue", justify="right")
    table.add_column("Seen")

    for n in feed:
        colour = "bold red" if n.type == NotificationType.OVERDUE else "yellow"
        marker = "" if n.read else "[bold]● [/bold]"
        table.add_row(
            n.id,
            f"{marker}{n.title}\n[dim]{n.message}[/dim]",
            f"[{colour}]{n.days_overdue}[/{colour}]",
            _format_date(n.created_at),
        )

    console.print(table)


@notifications_app.command("read")
def notifications_read(
    notification_id: str = typer.Argument(..., help="Notification ID"),
    user: str = typer.Option("librarian", "--user", "-u", help="Feed owner"),
) -> None:
    """Mark a notification as read."""
    from .notifications import OverdueNotifier

    OverdueNotifier(get_db()).mark_read(user, notification_id)
    print_success("Marked as read")


@notifications_app.command("unread")
def notifications_unread(
    notification_id: str = typer.Argument(..., help="Notification ID"),
    user: str = typer.Option("librarian", "--user", "-u", help="Feed owner"),
) -> None:
    """Mark a notification as unread."""
    from .notifications import OverdueNotifier

    OverdueNotifier(get_db()).mark_unread(user, notification_id)
    print_success("Marked as unread")


@notifications_app.command("read-all")
def notifications_read_all(
    user: str = typer.Option("librarian", "--user", "-u", help="Feed owner"),
) -> None:
    """Mark every notification as read."""
    from .notifications import OverdueNotifier

    count = OverdueNotifier(get_db()).mark_all_read(user)
    print_success(f"Marked {count} notification(s) as read")


@notifications_app.command("delete")
def notifications_delete(
    notification_id: str = typer.Argument(..., help="Notification ID"),
    user: str = typer.Option("librarian", "--user", "-u", help="Feed owner"),
) -> None:
    """Remove a notification from the feed for good."""
    from .notifications import OverdueNotifier

    OverdueNotifier(get_db()).delete(user, notification_id)
    print_success("Notification deleted")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"schoolib version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
