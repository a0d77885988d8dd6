"""arlinks CLI - Main commands."""
import asyncio
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table

app = typer.Typer(
    name="arlinks",
    help="Bundle uploads to Arweave-style storage gateways",
    add_completion=False
)
console = Console()

WALLET_ENV = "ARLINKS_WALLET"


# Default wallet path: ~/.config/arlinks/AR-wallet.json
def get_wallet_path() -> Path:
    env_path = os.environ.get(WALLET_ENV)
    if env_path:
        return Path(env_path)
    config_dir = Path.home() / ".config" / "arlinks"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "AR-wallet.json"


def run_async(coro):
    """Run async function."""
    return asyncio.run(coro)


def load_wallet(path: Optional[Path]):
    from arlinks import Wallet, WalletError

    wallet_path = path or get_wallet_path()
    if not wallet_path.exists():
        console.print(f"[red]No wallet at {wallet_path}. Run 'arlinks wallet-generate' first.[/red]")
        raise typer.Exit(1)
    try:
        return Wallet.load(wallet_path)
    except WalletError as e:
        console.print(f"[red]Invalid wallet: {e}[/red]")
        raise typer.Exit(1)


@app.command("wallet-generate")
def wallet_generate(
    out: Path = typer.Option(None, "--out", "-o", help="Where to save the JWK file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing wallet"),
):
    """Generate a new wallet and save it."""
    from arlinks import Wallet

    target = out or get_wallet_path()
    if target.exists() and not force:
        console.print(f"[yellow]Wallet already exists at {target} (use --force)[/yellow]")
        raise typer.Exit(1)

    with console.status("Generating 4096-bit RSA key..."):
        wallet = Wallet.generate()
    wallet.save(target)

    console.print(f"[green]Wallet saved to {target}[/green]")
    console.print(f"Address: {wallet.address}")


@app.command("wallet-import")
def wallet_import(
    source: Path = typer.Argument(..., help="JWK file to import", exists=True),
    out: Path = typer.Option(None, "--out", "-o", help="Where to store the wallet"),
):
    """Validate a JWK wallet file and store it as the default wallet."""
    from arlinks import Wallet, WalletError

    try:
        wallet = Wallet.load(source)
    except WalletError as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(1)

    target = out or get_wallet_path()
    wallet.save(target)
    console.print(f"[green]Imported wallet {wallet.address}[/green]")
    console.print(f"Stored at: {target}")


@app.command()
def address(
    wallet_path: Path = typer.Option(None, "--wallet", "-w", help="JWK wallet file"),
):
    """Show the wallet address."""
    console.print(load_wallet(wallet_path).address)


@app.command()
def balance(
    wallet_path: Path = typer.Option(None, "--wallet", "-w", help="JWK wallet file"),
    gateway: str = typer.Option(None, "--gateway", "-g", help="Gateway URL"),
):
    """Show the wallet balance in AR."""
    from arlinks import ArLinksClient, UploadConfig, GatewayConfig, GatewayError

    wallet = load_wallet(wallet_path)

    async def show_balance():
        config = UploadConfig.from_env()
        if gateway:
            config.gateway = GatewayConfig.from_url(gateway)

        async with ArLinksClient(wallet, config=config) as client:
            try:
                ar = await client.get_balance()
            except GatewayError as e:
                console.print(f"[red]Balance query failed: {e}[/red]")
                raise typer.Exit(1)
            console.print(f"[bold]{wallet.address}[/bold]: {ar} AR")

    run_async(show_balance())


@app.command()
def upload(
    files: List[Path] = typer.Argument(..., help="Files to upload, in order"),
    wallet_path: Path = typer.Option(None, "--wallet", "-w", help="JWK wallet file"),
    out: Path = typer.Option(Path("."), "--out", "-o", help="Directory for the result JSON"),
    gateway: str = typer.Option(None, "--gateway", "-g", help="Gateway URL"),
):
    """Upload files as one or more bundles."""
    from arlinks import ArLinksClient, UploadConfig, GatewayConfig

    wallet = load_wallet(wallet_path)

    async def do_upload():
        config = UploadConfig.from_env()
        if gateway:
            config.gateway = GatewayConfig.from_url(gateway)

        async with ArLinksClient(wallet, config=config) as client:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console
            ) as progress:
                tasks = {}

                def on_progress(bundle_index: int, uploaded: int, total: int):
                    if bundle_index not in tasks:
                        tasks[bundle_index] = progress.add_task(
                            f"Bundle {bundle_index}", total=total
                        )
                    progress.update(tasks[bundle_index], completed=uploaded, total=total)

                outcome = await client.upload(files, progress_callback=on_progress, output_dir=out)

            table = Table(title="Bundles")
            table.add_column("Index", justify="right")
            table.add_column("Transaction")
            table.add_column("Files")
            for bundle in outcome.result:
                table.add_row(
                    str(bundle.bundle_index),
                    bundle.transaction_id,
                    ", ".join(entry.name for _, entry in sorted(bundle.manifest.items()))
                )
            if len(outcome.result):
                console.print(table)

            if not outcome.is_complete:
                console.print(f"[red]Upload stopped ({outcome.failure_kind}): {outcome.failure}[/red]")
                raise typer.Exit(1)

            console.print(f"[green]Uploaded {len(files)} file(s) in {len(outcome.result)} bundle(s)[/green]")

    run_async(do_upload())


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
