"""
nodepilot CLI - Inspect and operate a Bitcoin Core node from the terminal.
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime
from typing import Any, NoReturn

import typer
from loguru import logger

from nodepilot.config import Settings
from nodepilot.models import FeeTier, OpResult
from nodepilot.node import NodeController
from nodepilot.stores import JsonHistoryStore, MemoryCredentialStore

app = typer.Typer(
    name="nodepilot",
    help="Bitcoin Core node control plane",
    add_completion=False,
)

RPC_HOST = typer.Option(None, "--rpc-host", envvar="NODEPILOT_RPC_HOST", help="Node RPC host")
RPC_PORT = typer.Option(None, "--rpc-port", envvar="NODEPILOT_RPC_PORT", help="Node RPC port")
RPC_USER = typer.Option(None, "--rpc-user", envvar="NODEPILOT_RPC_USER")
RPC_PASSWORD = typer.Option(None, "--rpc-password", envvar="NODEPILOT_RPC_PASSWORD")
LOG_LEVEL = typer.Option("WARNING", "--log-level", "-l")
FEE_TIER = typer.Option(FeeTier.STANDARD, "--tier", "-t", help="Fee tier")
FEE_RATE = typer.Option(None, "--fee-rate", help="Custom fee rate in sat/vB (overrides --tier)")


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_settings(
    rpc_host: str | None,
    rpc_port: int | None,
    rpc_user: str | None,
    rpc_password: str | None,
) -> Settings:
    overrides: dict[str, Any] = {
        "rpc_host": rpc_host,
        "rpc_port": rpc_port,
        "rpc_user": rpc_user,
        "rpc_password": rpc_password,
    }
    return Settings(**{k: v for k, v in overrides.items() if v is not None})


def build_controller(settings: Settings) -> NodeController:
    return NodeController(
        settings,
        credentials=MemoryCredentialStore(),
        history=JsonHistoryStore(settings.history_file),
    )


def _fail(result: OpResult) -> NoReturn:
    logger.error(result.error)
    raise typer.Exit(1)


async def _connected(settings: Settings, poll: bool = False) -> NodeController:
    controller = build_controller(settings)
    result = await controller.connect(poll=poll)
    if not result.ok:
        await controller.close()
        _fail(result)
    return controller


def _format_sats(sats: int | None) -> str:
    if sats is None:
        return "--"
    return f"{sats:,} sats ({sats / 1e8:.8f} BTC)"


def _format_optional(value: Any, unit: str) -> str:
    return "--" if value is None else f"{value} {unit}"


@app.command()
def status(
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Show block height, sync progress, peers and mempool size."""
    setup_logging(log_level)
    asyncio.run(_status(load_settings(rpc_host, rpc_port, rpc_user, rpc_password)))


async def _status(settings: Settings) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_status()
        shown = controller.status.display()
        print(f"\nNode {settings.node_address}")
        print(f"  Block height:  {shown['block_height']}")
        print(f"  Sync status:   {shown['sync_status']}")
        print(f"  Peers:         {shown['peers']}")
        print(f"  Mempool size:  {shown['mempool_size']}")
    finally:
        await controller.close()


@app.command()
def blocks(
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of recent blocks"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """List the most recent blocks, newest first."""
    setup_logging(log_level)
    asyncio.run(_blocks(load_settings(rpc_host, rpc_port, rpc_user, rpc_password), count))


async def _blocks(settings: Settings, count: int) -> None:
    controller = await _connected(settings)
    try:
        result = await controller.refresh_recent_blocks(count)
        if not result.ok:
            _fail(result)
        for block in controller.recent_blocks:
            mined = datetime.fromtimestamp(block.time).strftime("%Y-%m-%d %H:%M:%S")
            print(f"  {block.height:>8}  {block.short_hash}  {mined}")
    finally:
        await controller.close()


@app.command()
def block(
    block_hash: str = typer.Argument(..., help="Block hash"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Show one block's size, weight, transaction count and fee statistics."""
    setup_logging(log_level)
    asyncio.run(_block(load_settings(rpc_host, rpc_port, rpc_user, rpc_password), block_hash))


async def _block(settings: Settings, block_hash: str) -> None:
    controller = await _connected(settings)
    try:
        result = await controller.block_detail(block_hash)
        if not result.ok:
            _fail(result)
        detail = result.value
        mined = datetime.fromtimestamp(detail.time).strftime("%Y-%m-%d %H:%M:%S")
        print(f"\nBlock {detail.height}")
        print(f"  Hash:          {detail.hash}")
        print(f"  Timestamp:     {mined}")
        print(f"  Size:          {_format_optional(detail.size, 'bytes')}")
        print(f"  Weight:        {_format_optional(detail.weight, 'WU')}")
        print(f"  Transactions:  {'--' if detail.tx_count is None else detail.tx_count}")
        fees = detail.fees
        if fees is None:
            print("  Fee statistics unavailable")
            return
        span = "--"
        if fees.min_feerate is not None and fees.max_feerate is not None:
            span = f"{fees.min_feerate:g} - {fees.max_feerate:g} sat/vB"
        print(f"  Fee span:      {span}")
        print(f"  Median fee:    {_format_optional(fees.median_feerate, 'sat/vB')}")
        print(f"  Total fees:    {_format_sats(fees.total_fee)}")
        print(f"  Subsidy+fees:  {_format_sats(fees.reward)}")
    finally:
        await controller.close()


@app.command()
def tx(
    txid: str = typer.Argument(..., help="Transaction id"),
    account: str | None = typer.Option(None, "--account", "-a", help="Owning account"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Show a wallet transaction as recorded by its account."""
    setup_logging(log_level)
    asyncio.run(_tx(load_settings(rpc_host, rpc_port, rpc_user, rpc_password), txid, account))


async def _tx(settings: Settings, txid: str, account: str | None) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_accounts()
        if account is not None:
            selected = await controller.select_account(account)
            if not selected.ok:
                _fail(selected)
        result = await controller.transaction_detail(txid)
        if not result.ok:
            _fail(result)
        detail = result.value
        print(f"\nTransaction {detail.txid} ({detail.account})")
        print(f"  Amount:         {detail.amount:.8f} BTC")
        if detail.fee is not None:
            print(f"  Fee:            {detail.fee:.8f} BTC")
        print(f"  Confirmations:  {detail.confirmations}")
        if detail.block_hash:
            print(f"  Block:          {detail.block_height} {detail.block_hash}")
        for entry in detail.entries:
            label = f" [{entry.label}]" if entry.label else ""
            print(f"  {entry.category:<8} {entry.amount:.8f} BTC  {entry.address or ''}{label}")
    finally:
        await controller.close()


@app.command()
def fees(
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Show the economy, standard and priority fee rates."""
    setup_logging(log_level)
    asyncio.run(_fees(load_settings(rpc_host, rpc_port, rpc_user, rpc_password)))


async def _fees(settings: Settings) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_fees()
        estimate = controller.fee_estimate
        source = "node" if estimate.is_live else "static defaults"
        print(f"\nFee rates ({source}):")
        print(f"  Economy:   {estimate.economy} sat/vB")
        print(f"  Standard:  {estimate.standard} sat/vB")
        print(f"  Priority:  {estimate.priority} sat/vB")
    finally:
        await controller.close()


@app.command()
def mempool(
    width: float = typer.Option(200.0, "--width", help="Layout container width"),
    height: float = typer.Option(200.0, "--height", help="Layout container height"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Rank pending transactions by fee density and show their block layout."""
    setup_logging(log_level)
    if width <= 0 or height <= 0:
        logger.error("Layout width and height must be positive")
        raise typer.Exit(1)
    asyncio.run(
        _mempool(load_settings(rpc_host, rpc_port, rpc_user, rpc_password), width, height)
    )


async def _mempool(settings: Settings, width: float, height: float) -> None:
    controller = await _connected(settings)
    try:
        result = await controller.refresh_mempool()
        if not result.ok:
            _fail(result)
        snapshot = controller.mempool
        shown = min(snapshot.total_count, settings.mempool_display_limit)
        print(f"\nMempool: {snapshot.total_count} transactions, showing top {shown}")
        for position, packed in enumerate(controller.layout_mempool(width, height), 1):
            entry = packed.entry
            print(
                f"  {position:>3}  {entry.txid[:16]}  {entry.fee_density:>9.2f} sat/vB  "
                f"{packed.size_class.value:<6}  x={packed.x:.1f} y={packed.y:.1f}"
            )
    finally:
        await controller.close()


@app.command()
def accounts(
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """List the node's wallets with their balances."""
    setup_logging(log_level)
    asyncio.run(_accounts(load_settings(rpc_host, rpc_port, rpc_user, rpc_password)))


async def _accounts(settings: Settings) -> None:
    controller = await _connected(settings)
    try:
        result = await controller.refresh_accounts()
        if not result.ok:
            _fail(result)
        await controller.refresh_balances()
        if not controller.accounts:
            print("\nNo accounts found on the node.")
            return
        print(f"\n{len(controller.accounts)} account(s):")
        for name, account in controller.accounts.items():
            marker = "*" if name == controller.selected_account else " "
            print(f"  {marker} {name:<24} {_format_sats(account.balance)}")
    finally:
        await controller.close()


@app.command()
def addresses(
    account: str = typer.Argument(..., help="Account (wallet) name"),
    new: bool = typer.Option(False, "--new", help="Generate a new receive address first"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """List an account's addresses, labels and balances."""
    setup_logging(log_level)
    asyncio.run(
        _addresses(load_settings(rpc_host, rpc_port, rpc_user, rpc_password), account, new)
    )


async def _addresses(settings: Settings, account: str, new: bool) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_accounts()
        selected = await controller.select_account(account)
        if not selected.ok:
            _fail(selected)
        result = await controller.refresh_addresses(account)
        if not result.ok:
            _fail(result)
        if new:
            generated = await controller.generate_address(account)
            if not generated.ok:
                _fail(generated)
            print(f"\nNew address: {generated.value}")
        print(f"\nAddresses in {account}:")
        for entry in controller.accounts[account].addresses:
            used = "used" if entry.used else "new "
            label = entry.label or ""
            print(f"  {entry.address}  {used}  {_format_sats(entry.balance)}  {label}")
    finally:
        await controller.close()


@app.command()
def sweep(
    destination: str = typer.Argument(..., help="Account receiving all funds"),
    tier: FeeTier = FEE_TIER,
    fee_rate: str | None = FEE_RATE,
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Consolidate the funds of every other account into DESTINATION."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_port, rpc_user, rpc_password)
    asyncio.run(_sweep(settings, destination, tier, fee_rate))


async def _sweep(
    settings: Settings, destination: str, tier: FeeTier, fee_rate: str | None
) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_accounts()
        if fee_rate is None:
            await controller.refresh_fees()
        result = await controller.sweep(destination, tier, fee_rate)
        if controller.last_sweep is not None:
            print()
            for line in controller.last_sweep.lines():
                print(f"  {line}")
        if not result.ok:
            _fail(result)
    finally:
        await controller.close()


@app.command()
def send(
    recipient: str = typer.Argument(..., help="Destination address"),
    amount: str = typer.Argument(..., help="Amount in BTC"),
    account: str | None = typer.Option(None, "--account", "-a", help="Paying account"),
    tier: FeeTier = FEE_TIER,
    fee_rate: str | None = FEE_RATE,
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Send AMOUNT BTC to RECIPIENT."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_port, rpc_user, rpc_password)
    asyncio.run(_send(settings, recipient, amount, account, tier, fee_rate))


async def _send(
    settings: Settings,
    recipient: str,
    amount: str,
    account: str | None,
    tier: FeeTier,
    fee_rate: str | None,
) -> None:
    controller = await _connected(settings)
    try:
        await controller.refresh_accounts()
        if account is not None:
            selected = await controller.select_account(account)
            if not selected.ok:
                _fail(selected)
        await controller.refresh_balances()
        if fee_rate is None:
            await controller.refresh_fees()
        result = await controller.send(recipient, amount, tier, fee_rate)
        if not result.ok:
            _fail(result)
        print(f"\nTransaction ID: {result.value}")
    finally:
        await controller.close()


def _parse_param(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command()
def rpc(
    method: str = typer.Argument(..., help="RPC method"),
    params: list[str] | None = typer.Argument(None, help="Parameters (JSON or plain strings)"),
    wallet: str | None = typer.Option(None, "--wallet", "-w", help="Account scope"),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = LOG_LEVEL,
) -> None:
    """Execute an arbitrary RPC command and print the response."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_port, rpc_user, rpc_password)
    parsed = [_parse_param(p) for p in params or []]
    asyncio.run(_rpc(settings, method, parsed, wallet))


async def _rpc(settings: Settings, method: str, params: list[Any], wallet: str | None) -> None:
    controller = await _connected(settings)
    try:
        result = await controller.execute_rpc(method, params, wallet)
        if not result.ok:
            _fail(result)
        print(json.dumps(result.value, indent=2, default=str))
    finally:
        await controller.close()


@app.command()
def watch(
    duration: float | None = typer.Option(
        None, "--duration", help="Stop after this many seconds (default: until Ctrl+C)"
    ),
    rpc_host: str | None = RPC_HOST,
    rpc_port: int | None = RPC_PORT,
    rpc_user: str | None = RPC_USER,
    rpc_password: str | None = RPC_PASSWORD,
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Connect and keep every view refreshed until interrupted."""
    setup_logging(log_level)
    settings = load_settings(rpc_host, rpc_port, rpc_user, rpc_password)
    try:
        asyncio.run(_watch(settings, duration))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


async def _watch(settings: Settings, duration: float | None) -> None:
    controller = await _connected(settings, poll=True)
    loop = asyncio.get_running_loop()
    deadline = None if duration is None else loop.time() + duration
    try:
        while controller.is_connected:
            if deadline is not None and loop.time() >= deadline:
                break
            shown = controller.status.display()
            estimate = controller.fee_estimate
            print(
                f"height={shown['block_height']} sync={shown['sync_status']} "
                f"peers={shown['peers']} mempool={shown['mempool_size']} "
                f"fees={estimate.economy}/{estimate.standard}/{estimate.priority} sat/vB"
            )
            await asyncio.sleep(settings.status_poll_interval)
    finally:
        await controller.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
