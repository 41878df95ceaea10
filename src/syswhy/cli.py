#!/usr/bin/env python3
"""
syswhy command line

One subcommand per diagnostic module, plus `all` and `completions`.

Exit status is 0 when at least one module produced a report and 1 when
every requested module failed.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import click
from click.shell_completion import get_completion_class
from rich.console import Console

from .__version__ import __version__, get_full_version
from .core.module import ModuleConfig
from .core.runner import (
    ModuleOutcome,
    WatchLoop,
    exit_code_for,
    install_signal_handlers,
    run_all_modules,
    run_module,
)
from .modules import all_modules, get_module
from .output import TerminalRenderer, make_console, outcomes_to_json
from .utils.env_config import get_config, get_config_bool, get_config_int, initialize_config
from .utils.format import format_bytes, format_duration
from .utils.logging_config import parse_level, setup_logging
from .utils.system import get_system_info

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    """Global options shared by every subcommand"""
    json_output: bool
    verbose: bool
    console: Console


def _extras(**values) -> dict:
    """Module flags as extra_args; unset options are left out"""
    extras = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        extras[key] = str(value)
    return extras


def watch_options(func):
    """--watch, --interval and --top shared by every module command"""
    func = click.option('--top', 'top_n', type=click.IntRange(min=1), default=None,
                        help='Length of ranked lists (default: SYSWHY_TOP or 10)')(func)
    func = click.option('--interval', type=click.FloatRange(min=0, min_open=True), default=None,
                        help='Seconds between watch iterations (default: SYSWHY_INTERVAL or 2)')(func)
    func = click.option('--watch', '-w', is_flag=True, help='Re-run continuously until Ctrl+C')(func)
    return func


def _render(state: CliState, outcomes: List[ModuleOutcome], top_n: Optional[int]) -> None:
    if state.json_output:
        click.echo(outcomes_to_json(outcomes))
        return
    if state.verbose:
        info = get_system_info()
        state.console.print(
            f"[dim]{info['hostname']} | {info['os']} | kernel {info['kernel']} | {info['arch']}"
            f" | {format_bytes(info['memory_total'])} RAM | up {format_duration(info['uptime'])}"
            f"{'' if info['root'] else ' | not root'}[/dim]"
        )
    renderer = TerminalRenderer(state.console, verbose=state.verbose, top_n=top_n)
    renderer.render_outcomes(outcomes)


def _execute(state: CliState, step: Callable[[], List[ModuleOutcome]], watch: bool,
             config: ModuleConfig) -> int:
    if not watch:
        outcomes = step()
        _render(state, outcomes, config.top_n)
        return exit_code_for(outcomes)

    loop = WatchLoop(config.interval)
    install_signal_handlers(loop)
    last: List[List[ModuleOutcome]] = []

    def render(outcomes):
        if not state.json_output:
            state.console.clear()
        _render(state, outcomes, config.top_n)
        last[:] = [outcomes]

    iterations = loop.run(step, render)
    logger.debug(f"Watch loop stopped after {iterations} iteration(s)")
    # Interrupted before anything was shown is not a failure
    return exit_code_for(last[0]) if last else 0


def _module_command(ctx: click.Context, name: str, watch: bool, interval, top_n, **flags) -> None:
    state: CliState = ctx.obj
    try:
        config = ModuleConfig.from_env(
            verbose=state.verbose,
            watch=watch,
            interval=interval,
            top_n=top_n,
            json_output=state.json_output,
            extra_args=_extras(**flags),
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    module = get_module(name)
    ctx.exit(_execute(state, lambda: [run_module(module, config)], watch, config))


@click.group(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--json', 'json_output', is_flag=True, help='Machine-readable JSON output')
@click.option('--verbose', '-v', is_flag=True, help='Show details and extra metrics')
@click.option('--no-color', is_flag=True, help='Disable colored output')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.version_option(__version__, prog_name='syswhy', message=f'%(prog)s {get_full_version()}')
@click.pass_context
def cli(ctx, json_output, verbose, no_color, debug):
    """Explain WHY your Linux system is behaving the way it is."""

    # Initialize configuration from .env file
    config_result = initialize_config()

    level = logging.DEBUG if debug else parse_level(get_config('SYSWHY_LOG_LEVEL'))
    no_color = no_color or get_config_bool('SYSWHY_NO_COLOR')
    setup_logging(
        level=level,
        log_file=get_config('SYSWHY_LOG_FILE') or None,
        use_colors=not no_color,
    )

    for error in config_result.get('errors', []):
        logger.error(f"Configuration: {error}")
    for warning in config_result.get('warnings', []):
        logger.warning(f"Configuration: {warning}")

    ctx.obj = CliState(
        json_output=json_output,
        verbose=verbose,
        console=make_console(no_color=no_color),
    )


@cli.command()
@watch_options
@click.pass_context
def boot(ctx, watch, interval, top_n):
    """Why is boot slow?"""
    _module_command(ctx, 'boot', watch, interval, top_n)


@cli.command()
@watch_options
@click.pass_context
def cpu(ctx, watch, interval, top_n):
    """Why is the CPU busy?"""
    _module_command(ctx, 'cpu', watch, interval, top_n)


@cli.command()
@click.option('--swap/--no-swap', default=True, help='Include swap usage')
@watch_options
@click.pass_context
def mem(ctx, swap, watch, interval, top_n):
    """Where did the memory go?"""
    _module_command(ctx, 'mem', watch, interval, top_n, swap=swap)


@cli.command()
@click.argument('path', default='/', type=click.Path())
@click.option('--depth', '-d', type=click.IntRange(min=0, max=5), default=None, help='Directory depth to scan (max 5)')
@click.option('--large', metavar='SIZE', default=None, help='Only report files larger than SIZE (e.g. 100M, 1G)')
@click.option('--old', metavar='DAYS', type=click.IntRange(min=1), default=None,
              help='Report files not modified for DAYS days')
@click.option('--hidden', is_flag=True, help='Include hidden files and directories')
@watch_options
@click.pass_context
def disk(ctx, path, depth, large, old, hidden, watch, interval, top_n):
    """What is using disk space?"""
    _module_command(ctx, 'disk', watch, interval, top_n,
                    path=path, depth=depth, large=large, old=old, hidden=hidden)


@cli.command()
@click.option('--device', default=None, help='Only this block device (e.g. sda, nvme0n1)')
@watch_options
@click.pass_context
def io(ctx, device, watch, interval, top_n):
    """Who is doing disk I/O?"""
    _module_command(ctx, 'io', watch, interval, top_n, device=device)


@cli.command()
@click.option('--host', default=None, help='Host to ping (default 8.8.8.8)')
@click.option('--count', '-c', type=click.IntRange(min=1), default=None, help='Ping count')
@click.option('--dns-only', is_flag=True, help='Only check DNS resolution')
@watch_options
@click.pass_context
def net(ctx, host, count, dns_only, watch, interval, top_n):
    """Why is the network slow?"""
    _module_command(ctx, 'net', watch, interval, top_n, host=host, count=count, dns_only=dns_only)


@cli.command()
@click.option('--threshold', type=click.FloatRange(min=0), default=None,
              help='Flag fans above THRESHOLD x 100 RPM')
@watch_options
@click.pass_context
def fan(ctx, threshold, watch, interval, top_n):
    """Why are the fans loud?"""
    _module_command(ctx, 'fan', watch, interval, top_n, threshold=threshold)


@cli.command()
@click.option('--critical', is_flag=True, help='Only show sensors at critical temperature')
@watch_options
@click.pass_context
def temp(ctx, critical, watch, interval, top_n):
    """Why is it running hot?"""
    _module_command(ctx, 'temp', watch, interval, top_n, critical=critical)


@cli.command()
@click.option('--nvidia', 'vendor', flag_value='nvidia', default=None, help='Only NVIDIA GPUs')
@click.option('--amd', 'vendor', flag_value='amd', help='Only AMD GPUs')
@click.option('--intel', 'vendor', flag_value='intel', help='Only Intel GPUs')
@watch_options
@click.pass_context
def gpu(ctx, vendor, watch, interval, top_n):
    """What is the GPU doing?"""
    _module_command(ctx, 'gpu', watch, interval, top_n, vendor=vendor)


@cli.command()
@click.option('--detailed', is_flag=True, help='Show energy and power readings')
@watch_options
@click.pass_context
def batt(ctx, detailed, watch, interval, top_n):
    """Why is the battery draining?"""
    _module_command(ctx, 'batt', watch, interval, top_n, detailed=detailed)


@cli.command()
@watch_options
@click.pass_context
def sleep(ctx, watch, interval, top_n):
    """Why won't the system sleep?"""
    _module_command(ctx, 'sleep', watch, interval, top_n)


@cli.command()
@click.option('--device', default=None, help='Only lsusb lines containing this text')
@click.option('--dmesg', is_flag=True, help='Scan the kernel log for USB errors')
@watch_options
@click.pass_context
def usb(ctx, device, dmesg, watch, interval, top_n):
    """Why isn't the USB device working?"""
    _module_command(ctx, 'usb', watch, interval, top_n, device=device, dmesg=dmesg)


@cli.command()
@click.option('--mountpoint', '-m', default=None, help='Only mount points containing this text')
@click.option('--nfs', is_flag=True, help='Report NFS mounts')
@click.option('--options', is_flag=True, help='List mount options')
@watch_options
@click.pass_context
def mount(ctx, mountpoint, nfs, options, watch, interval, top_n):
    """Why won't it mount?"""
    _module_command(ctx, 'mount', watch, interval, top_n, mountpoint=mountpoint, nfs=nfs, options=options)


@cli.command(name='all')
@watch_options
@click.pass_context
def all_command(ctx, watch, interval, top_n):
    """Run every module concurrently"""
    state: CliState = ctx.obj
    try:
        config = ModuleConfig.from_env(
            verbose=state.verbose,
            watch=watch,
            interval=interval,
            top_n=top_n,
            json_output=state.json_output,
        )
    except ValueError as e:
        raise click.UsageError(str(e))

    modules = all_modules()
    workers = get_config_int('SYSWHY_MAX_WORKERS', 0)
    max_workers = workers if workers > 0 else None
    ctx.exit(_execute(state, lambda: run_all_modules(modules, config, max_workers), watch, config))


@cli.command()
@click.argument('shell', type=click.Choice(['bash', 'zsh', 'fish']))
def completions(shell):
    """Print the shell completion script"""
    completion_class = get_completion_class(shell)
    completion = completion_class(cli, {}, 'syswhy', '_SYSWHY_COMPLETE')
    click.echo(completion.source())


def main():
    cli(prog_name='syswhy')


if __name__ == '__main__':
    main()
