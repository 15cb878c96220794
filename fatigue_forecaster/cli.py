"""Command-line interface for the fatigue forecaster."""

import warnings
# Suppress TensorFlow/Protobuf version warnings
warnings.filterwarnings("ignore", message="Protobuf gencode version")

import logging
import threading
from datetime import date, timedelta

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .config import config
from .analysis.features import extract_daily_features, features_to_frame, HistoryIndex
from .loaders import load_export
from .service import FatigueForecastService

console = Console()

RISK_STYLES = {"low": "green", "moderate": "yellow", "high": "orange3", "critical": "red"}
URGENCY_EMOJI = {"suggested": "🟡", "recommended": "🟠", "urgent": "🔴"}


def _parse_day(value):
    return date.fromisoformat(value) if value else None


@click.group()
@click.option("--user", default="default", help="User whose model to use")
@click.option("--database-url", default=None, help="SQLAlchemy URL of the local model store")
@click.pass_context
def cli(ctx, user, database_url):
    """Personal training fatigue forecasting."""
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))
    ctx.obj = FatigueForecastService(user_id=user, database_url=database_url)
    ctx.call_on_close(ctx.obj.close)


@cli.command()
@click.option("--export", "export_path", required=True, type=click.Path(exists=True), help="JSON export of workouts and daily logs")
@click.option("--as-of", default=None, help="Forecast from this date (YYYY-MM-DD, default today)")
@click.pass_obj
def predict(service, export_path, as_of):
    """Forecast fatigue for the next 14 days."""
    console.print(Panel.fit("🔮 Fatigue Forecast", style="bold blue"))
    export = load_export(export_path)

    with console.status("[white]Running fatigue model...[/white]"):
        result = service.predict(export.workouts, export.daily_logs, export.profile, as_of=_parse_day(as_of))

    if result is None:
        console.print("[orange3]⚠️  Fatigue forecasting is unavailable on this device.[/orange3]")
        console.print("[white]Fall back to the rule-based recovery estimate.[/white]")
        return

    if not result.model_trained:
        console.print("[orange3]⚠️  Model has not been trained yet - predictions are low confidence.[/orange3]\n")

    table = Table(title="14-Day Fatigue Forecast", box=box.SIMPLE)
    table.add_column("Date", style="white")
    table.add_column("Fatigue", justify="right")
    table.add_column("Risk")
    table.add_column("Confidence", justify="right")
    table.add_column("Recommendation", style="white")

    for p in result.predictions:
        style = RISK_STYLES.get(p.risk_level, "white")
        table.add_row(
            p.date.isoformat(),
            f"{p.level:.2f}",
            f"[{style}]{p.risk_level}[/{style}]",
            f"{p.confidence * 100:.0f}%",
            p.recommendation.split(": ", 1)[-1],
        )
    console.print(table)
    console.print(f"Overall confidence: {result.confidence * 100:.0f}%  (model {result.model_version})")

    factors = result.predictions[0].contributing_factors if result.predictions else []
    if factors:
        console.print("\n[bold]Contributing factors:[/bold]")
        for factor in factors:
            console.print(f"   • {factor}")

    if result.deload:
        deload = result.deload
        console.print(
            f"\n{URGENCY_EMOJI.get(deload.urgency, '')} [bold]Deload {deload.urgency}[/bold]: "
            f"{deload.start.isoformat()} → {deload.end.isoformat()}  ({deload.reason})"
        )
    else:
        console.print("\n[green]✅ No deload needed in the forecast window[/green]")


@cli.command()
@click.option("--export", "export_path", required=True, type=click.Path(exists=True), help="JSON export of workouts and daily logs")
@click.option("--timeout", default=None, type=float, help="Stop training after this many seconds")
@click.pass_obj
def train(service, export_path, timeout):
    """Retrain the fatigue model on the full history."""
    console.print(Panel.fit("🧠 Fatigue Model Training", style="bold blue"))
    export = load_export(export_path)

    cancel = threading.Event()
    with console.status("[white]Training fatigue model...[/white]"):
        try:
            report = service.train(export.workouts, export.daily_logs, export.profile,
                                   timeout=timeout, cancel_event=cancel)
        except KeyboardInterrupt:
            cancel.set()
            console.print("[orange3]Cancelling training...[/orange3]")
            return

    if report.status == "trained":
        console.print(f"[green]✅ Model trained on {report.samples} samples in {report.epochs_trained} epochs[/green]")
        if report.final_val_loss is not None:
            console.print(f"   • Validation loss: {report.final_val_loss:.4f}")
    elif report.status == "insufficient_data":
        console.print(f"[orange3]⚠️  Not enough data to train: {report.message}[/orange3]")
    else:
        console.print(f"[red]❌ Training {report.status}: {report.message}[/red]")


@cli.command()
@click.pass_obj
def status(service):
    """Show model availability and training state."""
    table = Table(title="Fatigue Model Status", box=box.SIMPLE)
    table.add_column("Item", style="white")
    table.add_column("Value", style="green")
    supported = service.is_supported()
    table.add_row("User", service.user_id)
    table.add_row("Supported on this device", "yes" if supported else "no")
    table.add_row("Trained model", "yes" if supported and service.has_trained_model() else "no")
    console.print(table)


@cli.command("delete-model")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete_model(service, yes):
    """Delete the stored fatigue model."""
    if not yes and not click.confirm("Delete the stored fatigue model?"):
        return
    service.delete_model()
    console.print("[green]✅ Fatigue model deleted[/green]")


@cli.command()
@click.option("--export", "export_path", required=True, type=click.Path(exists=True), help="JSON export of workouts and daily logs")
@click.option("--days", default=7, help="Number of days to show")
@click.option("--as-of", default=None, help="Last day to show (YYYY-MM-DD, default today)")
def features(export_path, days, as_of):
    """Show engineered daily features."""
    export = load_export(export_path)
    end = _parse_day(as_of) or date.today()
    index = HistoryIndex(export.workouts, export.daily_logs)
    vectors = [
        extract_daily_features(end - timedelta(days=offset), index, profile=export.profile)
        for offset in range(days - 1, -1, -1)
    ]
    frame = features_to_frame(vectors)

    table = Table(title="Daily Features", box=box.SIMPLE)
    table.add_column("Date", style="white")
    for column in frame.columns:
        table.add_column(column, justify="right")
    for day, row in frame.iterrows():
        table.add_row(str(day), *[f"{v:.2f}" if isinstance(v, float) else str(v) for v in row])
    console.print(table)


def main():
    cli()


if __name__ == "__main__":
    main()
