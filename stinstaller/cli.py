#!/usr/bin/env python3
"""
ST Installer CLI - Command-line interface
Click-based front end: dependency check, install/update, branch switch,
port and whitelist editing
"""

import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.rule import Rule

from stinstaller import __version__
from stinstaller.app_config import (
    AppConfigStore,
    ConfigWriteError,
    add_to_whitelist,
    current_port,
    current_whitelist,
    parse_addresses,
    set_port,
)
from stinstaller.config import ConfigManager, InstallerConfig
from stinstaller.core.environment import EnvironmentContext
from stinstaller.core.runner import CommandRunner
from stinstaller.core.sync import SyncResult, SyncStatus
from stinstaller.core.workflows import (
    InstallReport,
    ToolUnavailableError,
    check_dependencies,
    install_or_update,
    restart_recommended,
    switch_branch,
)
from stinstaller.logging_setup import configure_logging
from stinstaller.platform.acquisition import AcquisitionChainResolver
from stinstaller.platform.installers import get_platform_ops
from stinstaller.platform.path_registry import PathRegistrar, RegistrationStatus
from stinstaller.platform.requirements import AcquisitionOutcome, default_requirements

# Force UTF-8 encoding for stdout/stderr on Windows to handle emojis
if sys.platform == 'win32':
    import io
    if isinstance(sys.stdout, io.TextIOWrapper):
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
    if isinstance(sys.stderr, io.TextIOWrapper):
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')

console = Console()


class Session:
    """Objects shared by every command of one invocation"""

    def __init__(self, config: InstallerConfig, runner: Optional[CommandRunner] = None,
                 context: Optional[EnvironmentContext] = None):
        self.config = config
        self.runner = runner or CommandRunner()
        self._context = context

    @property
    def context(self) -> EnvironmentContext:
        if self._context is None:
            self._context = EnvironmentContext.detect()
        return self._context

    def resolver(self) -> AcquisitionChainResolver:
        ops = get_platform_ops(self.context, self.runner, config=self.config)
        return AcquisitionChainResolver(self.context, ops)

    def app_config_store(self) -> AppConfigStore:
        return AppConfigStore(self.config.app_config_path)


def print_banner():
    """Print the start-up banner"""
    console.print(Panel.fit(
        f"[bold cyan]SillyTavern Installer & Configurator[/bold cyan]  v{__version__}",
        border_style="cyan",
    ))


def print_privilege_banner(context: EnvironmentContext):
    """Explain what the current privilege level means for installs and PATH"""
    if context.is_windows:
        if context.elevated:
            body = (
                "Running as [bold]Administrator[/bold].\n"
                "Git/Node.js are installed from the vendor installers (winget/Chocolatey are skipped),\n"
                "and their directories are added to the system PATH."
            )
        else:
            body = (
                "Running as a [bold]regular user[/bold].\n"
                "Git/Node.js are installed with winget or Chocolatey first.\n"
                "Changing the system PATH needs 'Run as administrator'."
            )
    elif context.elevated:
        body = (
            "Running as [bold]root[/bold].\n"
            "Package managers run directly; the system PATH lives in /etc/environment."
        )
    else:
        body = (
            "Running as a [bold]regular user[/bold].\n"
            "Package managers run through sudo when a tool is missing."
        )
    console.print(Panel(body, title="ℹ️  Privileges", border_style="blue"))


def print_platform(context: EnvironmentContext):
    info = context.platform_info
    if info is None:
        return
    managers = ', '.join(pm.value for pm in info.package_managers) or 'none'
    primary = info.primary_package_manager.value if info.primary_package_manager else 'none'
    wsl = ' (WSL)' if info.is_wsl else ''
    console.print(f"[dim]{info.os_name} {info.os_version} {info.architecture}{wsl}, Python {info.python_version}[/dim]")
    console.print(f"[dim]Package managers: {managers} (preferred: {primary})[/dim]")


def _print_details(text: str, title: str = "details"):
    if text:
        console.print(Rule(title, style="dim"))
        console.print(text, markup=False, highlight=False)
        console.print(Rule(style="dim"))


def _print_outcome(outcome: AcquisitionOutcome):
    if outcome.succeeded and outcome.strategy_used is None:
        location = f" ({outcome.resolved_executable_path})" if outcome.resolved_executable_path else ""
        console.print(f"[green]✅ {outcome.requirement} found{location}[/green]")
    elif outcome.succeeded:
        console.print(f"[green]✅ {outcome.requirement} installed via {outcome.strategy_used.describe()}[/green]")
    for registration in outcome.path_registrations:
        if registration.status == RegistrationStatus.ADDED:
            console.print(f"[green]   Added {registration.directory} to the system PATH[/green]")
        elif not registration.ok:
            console.print(f"[yellow]⚠️  {registration.directory}: {registration.message}[/yellow]")


def _report_tool_unavailable(error: ToolUnavailableError):
    console.print(f"\n[red]❌ {error}[/red]")
    if error.outcome is not None:
        _print_details(error.outcome.diagnostic_text, "last attempt")
        if error.outcome.newly_installed:
            console.print("[yellow]   Open a new terminal so the updated PATH is picked up, then run again.[/yellow]")
    if error.manual_url:
        console.print(f"[cyan]   Install {error.requirement.name} manually: {error.manual_url}[/cyan]")


def ensure_dependencies(session: Session, yes: bool) -> List[AcquisitionOutcome]:
    """
    Check git and Node.js, installing what is missing

    Raises:
        ToolUnavailableError: A prerequisite could not be made available
    """
    console.print("\n[bold cyan]🔍 Checking dependencies...[/bold cyan]")

    def confirm(requirement) -> bool:
        if yes:
            return True
        return Confirm.ask(f"   {requirement.name} is not installed. Install it automatically?", default=True)

    requirements = default_requirements(session.context, session.config)
    outcomes = check_dependencies(session.resolver(), requirements, confirm=confirm)
    for outcome in outcomes:
        _print_outcome(outcome)

    if restart_recommended(outcomes):
        console.print(
            "[yellow]⚠️  Tools were installed during this run. If they are not found later, "
            "open a new terminal so PATH changes take effect.[/yellow]"
        )
    return outcomes


def report_sync(result: SyncResult):
    """Tell the operator what a sync or branch switch did"""
    branch = f" ({result.branch})" if result.branch else ""
    if result.status == SyncStatus.ALREADY_UP_TO_DATE:
        console.print(f"[green]✅ Already up to date{branch}[/green]")
    elif result.status == SyncStatus.UPDATED_CLEANLY:
        console.print(f"[green]✅ Updated{branch}; local changes were kept[/green]")
    elif result.status == SyncStatus.NO_LOCAL_CHANGES:
        console.print(f"[green]✅ Updated{branch}[/green]")
    elif result.status == SyncStatus.OWNERSHIP_ERROR:
        console.print("[red]❌ git does not trust this directory (ownership mismatch).[/red]")
        console.print("   Run this command, then try again:")
        console.print(f"   {result.remedy_command}", style="bold", markup=False, highlight=False)
    elif result.status == SyncStatus.RESTORE_CONFLICT:
        console.print(f"[yellow]⚠️  Updated{branch}, but your local changes conflict with the new version.[/yellow]")
        console.print("   Resolve the conflicted files, then commit or discard them.")
    elif result.status == SyncStatus.MERGE_CONFLICT:
        console.print("[red]❌ The update could not be applied on top of your local history.[/red]")
        console.print("   Resolve it manually (for example with 'git status').")
    elif result.status == SyncStatus.NETWORK_ERROR:
        console.print("[red]❌ Could not reach the remote repository. Check the network connection.[/red]")
    else:
        console.print("[red]❌ git reported an error.[/red]")

    if not result.ok:
        _print_details(result.details, "git output")
    if result.pending_stash:
        console.print(f"[yellow]   Your local changes are saved in the stash '{result.pending_stash}'.[/yellow]")
        console.print("   Recover them with 'git stash list' and 'git stash pop <ref>'.")


def report_install(report: InstallReport):
    if report.cloned and report.clone_result is not None:
        if report.clone_result.ok:
            console.print(f"[green]✅ Cloned into {report.directory}[/green]")
        else:
            console.print(f"[red]❌ git clone failed ({report.clone_error_kind.value})[/red]")
            _print_details(report.clone_result.output, "git output")
    for note in report.notes:
        console.print(f"[yellow]⚠️  {note}[/yellow]")
    if report.sync is not None:
        report_sync(report.sync)
    if report.npm is not None:
        if report.npm.ok:
            console.print("[green]✅ npm install finished[/green]")
        else:
            console.print(f"[red]❌ npm install failed (exit code {report.npm.returncode})[/red]")


def do_install(session: Session, yes: bool) -> bool:
    ensure_dependencies(session, yes)
    console.print(f"\n[bold cyan]📦 Installing / updating SillyTavern in {session.config.install_dir}[/bold cyan]")
    report = install_or_update(session.config, session.runner)
    report_install(report)
    return report.ok


def do_switch(session: Session, target: str, yes: bool) -> bool:
    ensure_dependencies(session, yes)
    branch = session.config.branch_for(target)
    console.print(f"\n[bold cyan]🔀 Switching to {branch}[/bold cyan]")
    try:
        report = switch_branch(session.config, session.runner, target)
    except FileNotFoundError as e:
        console.print(f"[red]❌ {e}[/red]")
        return False
    report_install(report)
    return report.ok


def do_port(session: Session, port: Optional[str]) -> bool:
    store = session.app_config_store()
    try:
        data = store.load()
    except ConfigWriteError as e:
        console.print(f"[red]❌ {e}[/red]")
        console.print("[dim]   Install SillyTavern and start it once so config.yaml exists.[/dim]")
        return False

    existing = current_port(data)
    if existing is None:
        console.print(f"Current port: (not set, SillyTavern uses {session.config.default_port})")
    else:
        console.print(f"Current port: [bold]{existing}[/bold]")

    if port is None:
        port = Prompt.ask("New port (1-65535, leave empty to keep)", default="", show_default=False)
    if not port.strip():
        console.print("No change.")
        return True

    try:
        new_port, backup = set_port(store, port)
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        return False
    except ConfigWriteError as e:
        console.print(f"[red]❌ {e}[/red]")
        return False

    if backup is not None:
        console.print(f"[dim]   Previous file saved as {backup.name}[/dim]")
    console.print(f"[green]✅ Port set to {new_port}. Restart SillyTavern to apply.[/green]")
    return True


def do_whitelist(session: Session, addresses: Optional[str]) -> bool:
    store = session.app_config_store()
    try:
        data = store.load()
    except ConfigWriteError as e:
        console.print(f"[red]❌ {e}[/red]")
        return False

    entries = current_whitelist(data)
    console.print(f"Current whitelist: {', '.join(entries) if entries else '(empty)'}")

    if addresses is None:
        addresses = Prompt.ask(
            "IP addresses to add (comma separated, leave empty to keep)", default="", show_default=False
        )
    submitted = parse_addresses(addresses)
    if not submitted:
        console.print("No change.")
        return True

    try:
        update = add_to_whitelist(store, submitted)
    except ConfigWriteError as e:
        console.print(f"[red]❌ {e}[/red]")
        return False

    for address in update.invalid:
        console.print(f"[yellow]⚠️  Not a valid IPv4 address, ignored: {address}[/yellow]")
    for address in update.duplicates:
        console.print(f"[dim]   Already whitelisted: {address}[/dim]")
    if not update.added:
        console.print("[yellow]No new addresses were added.[/yellow]")
    console.print("[green]✅ Whitelist saved. Restart SillyTavern to apply.[/green]")
    console.print(f"   Whitelist: {', '.join(update.final) if update.final else '(empty)'}")
    return True


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version and exit')
@click.option('-v', '--verbose', is_flag=True, help='Show debug logging')
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Settings file (default: nearest .stinstaller.yml)')
@click.option('-d', '--directory', default=None, help='SillyTavern directory (overrides settings)')
@click.pass_context
def main(ctx, version, verbose, config_path, directory):
    """
    SillyTavern Installer & Configurator

    Installs git and Node.js when missing, clones or updates SillyTavern
    without losing local edits, switches branches and edits config.yaml.

    Examples:
        st-installer                 # Interactive menu
        st-installer install         # Install or update
        st-installer switch staging  # Move to the staging branch
        st-installer port 8080       # Change the listening port
    """
    if version:
        click.echo(f"ST Installer v{__version__}")
        ctx.exit(0)

    configure_logging(verbose)

    if ctx.obj is None:
        config = ConfigManager.load_config(config_path)
        if directory:
            config.install_dir = directory
        ctx.obj = Session(config)

    if ctx.invoked_subcommand is None:
        ctx.invoke(menu)


@main.command()
@click.option('-y', '--yes', is_flag=True, help='Install missing tools without asking')
@click.pass_obj
def check(session: Session, yes):
    """Check for git and Node.js, installing them if missing"""
    print_privilege_banner(session.context)
    print_platform(session.context)
    try:
        ensure_dependencies(session, yes)
    except ToolUnavailableError as e:
        _report_tool_unavailable(e)
        sys.exit(1)


@main.command()
@click.option('-y', '--yes', is_flag=True, help='Install missing tools without asking')
@click.pass_obj
def install(session: Session, yes):
    """Install SillyTavern, or update an existing clone"""
    try:
        ok = do_install(session, yes)
    except ToolUnavailableError as e:
        _report_tool_unavailable(e)
        sys.exit(1)
    if not ok:
        sys.exit(1)


@main.command()
@click.argument('target', default='staging')
@click.option('-y', '--yes', is_flag=True, help='Install missing tools without asking')
@click.pass_obj
def switch(session: Session, target, yes):
    """Switch to TARGET: 'stable', 'staging' or a branch name"""
    try:
        ok = do_switch(session, target, yes)
    except ToolUnavailableError as e:
        _report_tool_unavailable(e)
        sys.exit(1)
    if not ok:
        sys.exit(1)


@main.command()
@click.argument('port', required=False)
@click.pass_obj
def port(session: Session, port):
    """Show or change SillyTavern's listening port"""
    if not do_port(session, port):
        sys.exit(1)


@main.command()
@click.argument('addresses', required=False)
@click.pass_obj
def whitelist(session: Session, addresses):
    """Add comma-separated IPv4 ADDRESSES to SillyTavern's whitelist"""
    if not do_whitelist(session, addresses):
        sys.exit(1)


@main.command('register-path')
@click.argument('directory', type=click.Path(file_okay=False, path_type=Path))
@click.pass_obj
def register_path(session: Session, directory):
    """Append DIRECTORY to the system-wide PATH (needs elevation)"""
    registration = PathRegistrar(session.context).register(str(directory))

    if registration.status == RegistrationStatus.ADDED:
        console.print(f"[green]✅ Added {directory} to the system PATH[/green]")
        if registration.message:
            console.print(f"[yellow]   {registration.message}[/yellow]")
    elif registration.status == RegistrationStatus.ALREADY_PRESENT:
        console.print(f"[green]✅ {directory} is already in the system PATH[/green]")
    elif registration.status == RegistrationStatus.PRIVILEGE_REQUIRED:
        console.print(f"[red]❌ {registration.message}[/red]")
        console.print("[dim]   Re-run as Administrator (Windows) or with sudo.[/dim]")
        sys.exit(1)
    else:
        console.print(f"[red]❌ Could not update the system PATH: {registration.message}[/red]")
        sys.exit(1)


@main.command('init-config')
@click.option('--force', is_flag=True, help='Overwrite an existing settings file')
@click.argument('directory', type=click.Path(file_okay=False, path_type=Path), default='.')
def init_config(force, directory):
    """Write a default .stinstaller.yml into DIRECTORY"""
    config_path = directory / ConfigManager.DEFAULT_CONFIG_NAME
    if config_path.exists() and not force:
        console.print(f"[yellow]⚠️  Configuration already exists: {config_path}[/yellow]")
        console.print("[dim]   Use --force to overwrite[/dim]")
        sys.exit(1)

    if not ConfigManager.save_config(InstallerConfig(), config_path):
        console.print(f"[red]❌ Could not write {config_path}[/red]")
        sys.exit(1)
    console.print(f"[green]✅ Created {config_path}[/green]")


MENU_TEXT = """[bold]Menu[/bold]
  1. Install / update SillyTavern
  2. Switch branch (stable | staging)
  3. Change port
  4. Edit whitelist
  5. Exit"""


@main.command()
@click.option('-y', '--yes', is_flag=True, help='Install missing tools without asking')
@click.pass_obj
def menu(session: Session, yes):
    """Interactive menu (default when no command is given)"""
    print_banner()
    print_privilege_banner(session.context)

    try:
        ensure_dependencies(session, yes)
        while True:
            console.print()
            console.print(MENU_TEXT)
            choice = Prompt.ask("Choose", choices=["1", "2", "3", "4", "5"], show_choices=False)

            if choice == "1":
                do_install(session, yes)
            elif choice == "2":
                target = Prompt.ask("Branch", choices=["stable", "staging"], default="staging")
                do_switch(session, target, yes)
            elif choice == "3":
                do_port(session, None)
            elif choice == "4":
                do_whitelist(session, None)
            else:
                console.print("Bye.")
                return
    except ToolUnavailableError as e:
        _report_tool_unavailable(e)
        sys.exit(1)


if __name__ == '__main__':
    main()
