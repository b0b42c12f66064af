from typing import Any, Dict, List, Optional
from rich.console import Console, Group
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box

from ..models import (
    EligibleHedge,
    FixingDetail,
    NetExposure,
    Order,
    PricingFixing,
)

# Display configuration constants
MAX_ROWS_DISPLAY = 100  # Maximum hedges/fixings listed in one table


class MatchingDisplay:
    """Rich console display for ticket matching and hedge fixing results."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize display with Rich console."""
        self.console = console or Console()

    def show_header(self) -> None:
        """Display system header."""
        header = Text("Hedge Match", style="bold blue")
        subheader = Text(
            "Physical ticket matching and hedge price fixing", style="italic"
        )

        self.console.print(Panel.fit(Group(header, subheader), border_style="blue"))

    def show_loading_summary(self, counts: Dict[str, int]) -> None:
        """Display how many records of each kind were loaded.

        Args:
            counts: Record kind -> number loaded
        """
        parts = [f"[bold green]{n}[/bold green] {kind}" for kind, n in counts.items()]
        self.console.print("Loaded " + ", ".join(parts))

    def show_order(self, order: Order, persisted: bool = True) -> None:
        """Display an optimized order with its ticket legs.

        Args:
            order: Order returned by the optimizer
            persisted: False for dry runs
        """
        title = f"Order #{order.id}" if persisted else f"Proposed Order #{order.id} (dry run)"
        summary = Table(title=title, box=box.ROUNDED)
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", justify="right")

        summary.add_row("Commodity", order.commodity)
        summary.add_row("Quantity (MT)", str(order.allocated_quantity))
        summary.add_row("Avg Buy Price", f"{order.buy_price:.2f}")
        summary.add_row("Avg Sell Price", f"{order.sell_price:.2f}")
        summary.add_row("Margin", f"{order.margin * 100:.2f}%")
        summary.add_row("Product Details", order.product_details or "-")
        summary.add_row("Status", order.status.value)

        legs = Table(title=f"Ticket Allocations ({len(order.allocations)})", box=box.SIMPLE)
        legs.add_column("Ticket", style="dim", no_wrap=True)
        legs.add_column("Side", justify="center")
        legs.add_column("Quantity", justify="right", style="blue")
        legs.add_column("Unit Price", justify="right", style="magenta")
        legs.add_column("Notional", justify="right")

        for alloc in order.allocations:
            legs.add_row(
                f"T{alloc.ticket_id}",
                alloc.side.value,
                str(alloc.quantity),
                f"{alloc.unit_price:.2f}",
                f"{alloc.notional:.2f}",
            )

        self.console.print("\n")
        self.console.print(summary)
        self.console.print(legs)

    def show_eligible_hedges(self, hedges: List[EligibleHedge], available: Optional[Any] = None) -> None:
        """Display hedge executions that can be allocated.

        Args:
            hedges: Eligible hedge candidates
            available: Unfixed physical quantity of the scoped reference, if any
        """
        if not hedges:
            self.console.print("\n[yellow]No eligible hedges found.[/yellow]")
            return

        display_count = min(len(hedges), MAX_ROWS_DISPLAY)
        title = f"Eligible Hedges ({len(hedges)} total"
        if len(hedges) > MAX_ROWS_DISPLAY:
            title += f", showing first {display_count}"
        title += ")"

        table = Table(title=title, box=box.ROUNDED)
        table.add_column("Hedge ID", style="cyan", no_wrap=True)
        table.add_column("Direction", justify="center")
        table.add_column("Commodity", style="green")
        table.add_column("Open / Trade", justify="right", style="blue")
        table.add_column("Exec Price", justify="right", style="magenta")
        table.add_column("Broker", style="dim")
        table.add_column("Status", justify="center")

        for hedge in hedges[:display_count]:
            execution = hedge.execution
            table.add_row(
                execution.id,
                execution.direction.value,
                execution.commodity,
                f"{hedge.open_quantity} / {execution.quantity}",
                str(execution.executed_price),
                execution.broker or "-",
                execution.status.value,
            )

        self.console.print("\n")
        self.console.print(table)
        if available is not None:
            self.console.print(f"Unfixed physical quantity: [bold]{available}[/bold] MT")

    def show_fixing(self, detail: FixingDetail) -> None:
        """Display one fixing and the hedge links it created."""
        fixing = detail.fixing
        self.console.print("\n")
        self.console.print(
            Panel.fit(
                Text(fixing.summary_line + (" [deleted]" if fixing.is_deleted else "")),
                title="Price Fixing",
                border_style="green" if not fixing.is_deleted else "red",
            )
        )

        table = Table(title=f"Hedge Links ({len(detail.links)})", box=box.SIMPLE)
        table.add_column("Hedge ID", style="cyan")
        table.add_column("Direction", justify="center")
        table.add_column("Physical Side", justify="center")
        table.add_column("Allocated", justify="right", style="blue")
        table.add_column("Exec Price", justify="right")
        table.add_column("Fixing Price", justify="right", style="magenta")

        for link in detail.links:
            table.add_row(
                link.hedge_execution_id,
                link.direction.value,
                link.side.value,
                str(link.allocated_quantity),
                str(link.exec_price),
                str(link.fixing_price),
            )
        self.console.print(table)

    def show_fixings(self, fixings: List[PricingFixing]) -> None:
        """Display a list of fixings, newest first."""
        if not fixings:
            self.console.print("\n[yellow]No fixings found.[/yellow]")
            return

        table = Table(title=f"Price Fixings ({len(fixings)})", box=box.ROUNDED)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Reference")
        table.add_column("Commodity", style="green")
        table.add_column("Quantity", justify="right", style="blue")
        table.add_column("Price", justify="right", style="magenta")
        table.add_column("Fixed On", justify="center")

        for fixing in fixings[:MAX_ROWS_DISPLAY]:
            table.add_row(
                str(fixing.id),
                fixing.ref.key,
                fixing.commodity,
                str(fixing.quantity),
                f"{fixing.final_price} {fixing.currency}",
                fixing.fixed_at.isoformat(),
            )

        self.console.print("\n")
        self.console.print(table)

    def show_exposure(self, exposure: NetExposure) -> None:
        """Display net exposure with per-hedge contributions."""
        style = {"Flat": "green", "Long": "yellow", "Short": "red"}.get(exposure.label.value, "white")
        self.console.print("\n")
        self.console.print(
            f"Order #{exposure.order_id} net exposure: [bold {style}]{exposure.display}[/bold {style}]"
        )

        if not exposure.contributions:
            return

        table = Table(box=box.SIMPLE)
        table.add_column("Hedge ID", style="cyan")
        table.add_column("Direction", justify="center")
        table.add_column("Open", justify="right")
        table.add_column("Signed", justify="right", style="bold")
        table.add_column("Linked To", style="dim")

        for c in exposure.contributions:
            table.add_row(
                c.hedge_execution_id,
                c.direction,
                str(c.open_quantity),
                f"{c.signed_quantity:+}",
                f"{c.link_level}:{c.link_id}",
            )
        self.console.print(table)

    def show_error(self, message: str) -> None:
        """Display error message.

        Args:
            message: Error message to display
        """
        self.console.print(f"\n[red]Error: {message}[/red]")

    def show_success(self, message: str) -> None:
        self.console.print(f"\n[green]{message}[/green]")

    def show_rule_info(self, rule_info: Dict[str, Any]) -> None:
        """Display information about the matching algorithm."""
        table = Table(title=rule_info.get("name", "Matcher"), box=box.ROUNDED)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Description", rule_info.get("description", "No description"))
        table.add_row("Pricing Policy", rule_info.get("pricing_policy", "-"))

        ranking = rule_info.get("ranking", [])
        if ranking:
            table.add_row("Ranking", "\n".join(f"• {r}" for r in ranking))
        if rule_info.get("notes"):
            table.add_row("Notes", rule_info["notes"])

        self.console.print("\n")
        self.console.print(table)
