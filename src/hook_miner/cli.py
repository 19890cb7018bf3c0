import json
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import click
import structlog
from rich.console import Console
from rich.table import Table

from hook_miner.address import CREATE2_DEPLOYER, derive_address, init_code_fingerprint, to_checksum
from hook_miner.client import mine_remote
from hook_miner.errors import FlagParseError, InputFormatError, RemoteMiningError
from hook_miner.flags import ALL_FLAGS_MASK, PRESETS, HookFlag, describe_flags, extract_flags, parse_flags
from hook_miner.log import configure_logging
from hook_miner.miner import DEFAULT_MAX_ITERATIONS, DEFAULT_REPORT_EVERY, mine, mine_parallel
from hook_miner.models import (
    Found,
    InvalidMask,
    MiningProgress,
    MiningRequest,
    MiningResult,
    result_to_dict,
)
from hook_miner.state_queue import SingleSlotQueue
from hook_miner.ui import render_result, ui_loop
from hook_miner.utils import hex_to_bytes, load_init_code, parse_fingerprint, parse_identity, parse_salt
from hook_miner.verifier import verify_deployment

log = structlog.get_logger(__name__)

EXIT_FOUND = 0
EXIT_NOT_FOUND = 1
EXIT_INVALID_MASK = 2


@click.group()
@click.option("--verbose", "-v", count=True, help="Log progress (-v info, -vv debug)")
@click.option("--log-json", is_flag=True, help="Emit log lines as JSON")
def cli(verbose: int, log_json: bool):
    """Mine CREATE2 salts for hook contracts whose address encodes their flags."""
    configure_logging(verbose, json=log_json)


def init_code_options(f):
    """Options shared by every command that needs the deployer and the init code hash."""
    f = click.option("--constructor-args", default=None, help="Hex ABI-encoded constructor arguments appended to --init-code")(f)
    f = click.option(
        "--init-code-format",
        type=click.Choice(["hex", "raw", "b64"]),
        default="hex",
        show_default=True,
    )(f)
    f = click.option("--init-code", "init_code_path", type=click.Path(exists=True, dir_okay=False), default=None, help="File with the contract creation code")(f)
    f = click.option("--init-code-hash", "-i", default=None, help="keccak256 of creation code + constructor args")(f)
    f = click.option(
        "--deployer",
        "-d",
        envvar="HOOK_MINER_DEPLOYER",
        default=CREATE2_DEPLOYER,
        show_default=True,
        help="Address that executes CREATE2",
    )(f)
    return f


def flag_options(f):
    f = click.option("--preset", "-p", type=click.Choice(sorted(PRESETS)), default=None, help="Named flag set")(f)
    f = click.option("--flags", "-f", "flag_specs", multiple=True, help="Flag name or mask literal, repeatable (e.g. -f before-swap -f 0x40)")(f)
    return f


def resolve_identity(deployer: str) -> bytes:
    try:
        return parse_identity(deployer)
    except InputFormatError as e:
        raise click.BadParameter(str(e), param_hint="--deployer")


def resolve_fingerprint(
    init_code_hash: Optional[str],
    init_code_path: Optional[str],
    init_code_format: str,
    constructor_args: Optional[str],
) -> bytes:
    """Init code hash from --init-code-hash, or computed from --init-code."""
    if (init_code_hash is None) == (init_code_path is None):
        raise click.UsageError("Pass exactly one of --init-code-hash or --init-code")

    try:
        if init_code_hash is not None:
            if constructor_args is not None:
                raise click.UsageError("--constructor-args only applies to --init-code")
            return parse_fingerprint(init_code_hash)

        bytecode = load_init_code(init_code_path, init_code_format)
        args = hex_to_bytes(constructor_args, name="constructor args") if constructor_args else b""
        return init_code_fingerprint(bytecode, args)
    except InputFormatError as e:
        raise click.BadParameter(str(e), param_hint="--init-code-hash / --init-code")


def resolve_mask(flag_specs: Tuple[str, ...], preset: Optional[str]) -> int:
    if not flag_specs and preset is None:
        raise click.UsageError("Pass --flags and/or --preset")
    try:
        mask = parse_flags(flag_specs)
    except FlagParseError as e:
        raise click.BadParameter(str(e), param_hint="--flags")
    if preset is not None:
        mask |= PRESETS[preset]
    return mask


def run_search(request: MiningRequest, *, workers: int, report_every: int, show_ui: bool) -> MiningResult:
    """Run the miner in a worker thread while the UI renders progress in the foreground."""
    state_queue: SingleSlotQueue[MiningProgress] = SingleSlotQueue()
    cancel = threading.Event()

    def search() -> MiningResult:
        try:
            if workers > 1:
                return mine_parallel(request, workers=workers, observer=state_queue, cancel=cancel)
            return mine(request, observer=state_queue, report_every=report_every, cancel=cancel)
        finally:
            # Always close the queue so the UI can exit
            state_queue.close()

    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(search)
        try:
            if show_ui:
                ui_loop(state_queue, request)
            result = future.result()
        except KeyboardInterrupt:
            log.warning("interrupted, cancelling search")
            cancel.set()
            result = future.result()

    last = state_queue.last
    log.debug(
        "search finished",
        elapsed=None if last is None else round(last.elapsed, 3),
        snapshots_coalesced=state_queue.coalesced,
    )
    return result


def exit_code_for(result: MiningResult) -> int:
    match result:
        case Found():
            return EXIT_FOUND
        case InvalidMask():
            return EXIT_INVALID_MASK
        case _:
            return EXIT_NOT_FOUND


@cli.command("mine")
@init_code_options
@flag_options
@click.option(
    "--max-iterations",
    "-n",
    envvar="HOOK_MINER_MAX_ITERATIONS",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_ITERATIONS,
    show_default=True,
    help="Search salts 0 .. N-1",
)
@click.option("--workers", "-w", envvar="HOOK_MINER_WORKERS", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--report-every", envvar="HOOK_MINER_REPORT_EVERY", type=click.IntRange(min=1), default=DEFAULT_REPORT_EVERY, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--no-ui", is_flag=True, help="Do not render live progress")
@click.pass_context
def mine_cmd(
    ctx: click.Context,
    deployer: str,
    init_code_hash: Optional[str],
    init_code_path: Optional[str],
    init_code_format: str,
    constructor_args: Optional[str],
    flag_specs: Tuple[str, ...],
    preset: Optional[str],
    max_iterations: int,
    workers: int,
    report_every: int,
    as_json: bool,
    no_ui: bool,
):
    """Find the smallest salt whose CREATE2 address carries exactly the given flags."""
    request = MiningRequest(
        identity=resolve_identity(deployer),
        fingerprint=resolve_fingerprint(init_code_hash, init_code_path, init_code_format, constructor_args),
        target_mask=resolve_mask(flag_specs, preset),
        max_iterations=max_iterations,
    )

    result = run_search(request, workers=workers, report_every=report_every, show_ui=not (no_ui or as_json))

    if as_json:
        click.echo(json.dumps(result_to_dict(result)))
    else:
        Console().print(render_result(request, result))
    ctx.exit(exit_code_for(result))


@cli.command()
@init_code_options
@flag_options
@click.option("--salt", "-s", required=True, help="Salt as decimal or 0x hex")
@click.option("--address", "-a", "deployed_address", default=None, help="Address the contract was actually deployed at")
@click.option("--json", "as_json", is_flag=True)
@click.pass_context
def verify(
    ctx: click.Context,
    deployer: str,
    init_code_hash: Optional[str],
    init_code_path: Optional[str],
    init_code_format: str,
    constructor_args: Optional[str],
    flag_specs: Tuple[str, ...],
    preset: Optional[str],
    salt: str,
    deployed_address: Optional[str],
    as_json: bool,
):
    """Recompute the address for a salt and check its flags."""
    try:
        salt_value = parse_salt(salt)
        deployed = None
        if deployed_address is not None:
            deployed = int.from_bytes(parse_identity(deployed_address), "big")
    except InputFormatError as e:
        raise click.BadParameter(str(e))

    report = verify_deployment(
        identity=resolve_identity(deployer),
        salt=salt_value,
        fingerprint=resolve_fingerprint(init_code_hash, init_code_path, init_code_format, constructor_args),
        target_mask=resolve_mask(flag_specs, preset),
        deployed_address=deployed,
    )

    if as_json:
        click.echo(json.dumps(report.to_dict()))
    else:
        status = "[bold spring_green2]OK[/]" if report.ok else "[bold red]MISMATCH[/]"
        console = Console()
        console.print(f"{status} {to_checksum(report.address)}")
        console.print(f"flags    0x{report.flags:04x}  {' | '.join(describe_flags(report.flags)) or '(none)'}")
        console.print(f"expected 0x{report.expected_flags:04x}  {' | '.join(describe_flags(report.expected_flags)) or '(none)'}")
        if report.deployed_address is not None and not report.address_match:
            console.print(f"deployed {to_checksum(report.deployed_address)} differs from derived address")
    ctx.exit(0 if report.ok else 1)


@cli.command()
@init_code_options
@click.option("--salt", "-s", required=True, help="Salt as decimal or 0x hex")
def address(
    deployer: str,
    init_code_hash: Optional[str],
    init_code_path: Optional[str],
    init_code_format: str,
    constructor_args: Optional[str],
    salt: str,
):
    """Print the CREATE2 address for one salt and the flags it encodes."""
    try:
        salt_value = parse_salt(salt)
    except InputFormatError as e:
        raise click.BadParameter(str(e), param_hint="--salt")

    derived = derive_address(
        resolve_identity(deployer),
        salt_value,
        resolve_fingerprint(init_code_hash, init_code_path, init_code_format, constructor_args),
    )
    flags = extract_flags(derived)
    click.echo(to_checksum(derived))
    click.echo(f"0x{flags:04x} {' '.join(describe_flags(flags))}".rstrip())


@cli.command()
@click.argument("mask", required=False)
def flags(mask: Optional[str]):
    """List hook flags, or decode MASK into flag names."""
    if mask is None:
        table = Table(title="Hook flags")
        table.add_column("Flag")
        table.add_column("Bit", justify="right")
        table.add_column("Value", justify="right")
        for flag in sorted(HookFlag, reverse=True):
            table.add_row(flag.name, str(int(flag).bit_length() - 1), f"0x{int(flag):04x}")
        for name, value in sorted(PRESETS.items()):
            table.add_row(f"preset: {name}", "", f"0x{value:04x}")
        Console().print(table)
        return

    try:
        value = parse_flags([mask])
    except FlagParseError as e:
        raise click.BadParameter(str(e), param_hint="MASK")

    for name in describe_flags(value):
        click.echo(name)
    if value & ~ALL_FLAGS_MASK:
        raise click.ClickException(f"mask {value:#x} has bits outside 0x{ALL_FLAGS_MASK:04x}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to bind the server to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, reload: bool):
    """Start the mining HTTP API."""
    import uvicorn

    click.echo(f"Starting hook miner API on http://{host}:{port}")
    click.echo("Available endpoints:")
    click.echo("  - POST /api/mine    - Mine a salt")
    click.echo("  - POST /api/verify  - Verify a salt")
    click.echo("  - GET  /api/flags   - List hook flags")
    click.echo("\nPress Ctrl+C to stop the server")

    if reload:
        # Use import string for reload mode
        uvicorn.run("hook_miner.api:app", host=host, port=port, reload=True)
    else:
        from hook_miner.api import app

        uvicorn.run(app, host=host, port=port, reload=False)


@cli.command()
@click.option("--endpoint", "-e", envvar="HOOK_MINER_ENDPOINT", default="http://127.0.0.1:8000", show_default=True)
@click.option("--deployer", "-d", envvar="HOOK_MINER_DEPLOYER", default=None)
@click.option("--init-code-hash", "-i", required=True)
@click.option("--flags", "-f", "flag_specs", multiple=True, required=True)
@click.option("--max-iterations", "-n", type=click.IntRange(min=0), default=None)
@click.pass_context
def remote(
    ctx: click.Context,
    endpoint: str,
    deployer: Optional[str],
    init_code_hash: str,
    flag_specs: Tuple[str, ...],
    max_iterations: Optional[int],
):
    """Mine on a running `hook-miner serve` instance."""
    try:
        body = mine_remote(
            endpoint,
            init_code_hash,
            list(flag_specs),
            deployer=deployer,
            max_iterations=max_iterations,
        )
    except RemoteMiningError as e:
        raise click.ClickException(str(e))

    click.echo(json.dumps(body))
    status = body.get("status")
    ctx.exit({"found": EXIT_FOUND, "invalid_mask": EXIT_INVALID_MASK}.get(status, EXIT_NOT_FOUND))


if __name__ == "__main__":
    cli()
