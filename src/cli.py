"""Command-line interface for agent-sandbox."""

import argparse
import logging
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path

import net
from agents import AgentNotFoundError, get_agent, list_agents, prepare_binds
from app import PlanReviewApp
from commandoutput import print_configuration_summary, print_warnings
from config_loader import ConfigError, PolicyRequest, load_policy
from environment import Environment
from launcher import EXIT_CONFIG_ERROR, ExecutorNotFoundError, Launcher, check_executor, sandbox_environment
from model import DirectiveKind, MountOperation, NetworkMode, SandboxConfig
from policy import is_path_covered, resolve_plan
from virtual_files import clean_stale_dirs

AGENT_SANDBOX_VERSION = "0.3.0"

log = logging.getLogger(__name__)


@dataclass
class ParsedArgs:
    """Parsed command-line arguments."""

    agent: str = "claude"
    agent_args: list[str] = field(default_factory=list)
    lists: list[tuple[DirectiveKind, str]] = field(default_factory=list)
    entries: list[tuple[DirectiveKind, str]] = field(default_factory=list)
    auto_create: bool = True
    use_project: bool = True
    network: NetworkMode = NetworkMode.RESTRICTED
    dry_run: bool = False
    review: bool = False

    def policy_request(self) -> PolicyRequest:
        return PolicyRequest(
            lists=list(self.lists),
            entries=list(self.entries),
            auto_create=self.auto_create,
            use_project=self.use_project,
        )


def print_error_box(title: str, *lines: str) -> None:
    """Print a formatted error box to stderr.

    Args:
        title: The error title (will be prefixed with "Error: ")
        *lines: Additional lines to print in the box
    """
    print("=" * 60, file=sys.stderr)
    print(f"Error: {title}", file=sys.stderr)
    print("", file=sys.stderr)
    for line in lines:
        print(line, file=sys.stderr)
    print("=" * 60, file=sys.stderr)


def configure_logging(env: Environment) -> Path | None:
    """Send debug logs to the XDG state directory.

    Returns:
        Log file path, or None if the directory cannot be created.
    """
    log_dir = env.state_home / "agent-sandbox"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return None
    log_path = log_dir / "agent-sandbox.log"
    logging.basicConfig(
        filename=str(log_path),
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    return log_path


class SandboxHelpFormatter(argparse.RawDescriptionHelpFormatter):
    """Custom formatter that shows our structured help."""

    def format_help(self) -> str:
        lines = [
            "agent-sandbox - Run a coding agent inside a bubblewrap sandbox.",
            f"Version: {AGENT_SANDBOX_VERSION}",
            "",
            "Core:",
            "  agent-sandbox [options] [-- agent args...]   Launch the agent in the working directory",
            f"  --agent NAME                 Agent to run: {', '.join(list_agents())} (default: claude)",
            "  --dry-run                    Print the bwrap command and exit",
            "  --review                     Show the mount plan and confirm before launching",
            "",
            "Filesystem Policy:",
            "  --allowlist FILE             Extra allowlist file (repeatable)",
            "  --denylist FILE              Extra denylist file (repeatable)",
            "  --allow PATH[:rw]            Allow one path, read-only or read-write (repeatable)",
            "  --deny PATTERN               Hide one path relative to the working dir (repeatable)",
            "  --no-auto-create             Do not create missing default lists",
            "  --no-project                 Ignore ./.agent-sandbox/ lists in the working dir",
            "",
            "Network:",
            "  --network MODE               full, restricted (default) or isolated",
            "  --allow-local-net            Same as --network full",
            "",
            "Maintenance:",
            "  --clean                      Remove leftover temporary files",
            "  --version                    Show version",
            "",
            "Configuration files:",
            "  ~/.config/agent-sandbox/allowlist.txt   ($AGENT_SANDBOX_ALLOWLIST)",
            "  ~/.config/agent-sandbox/denylist.txt    ($AGENT_SANDBOX_DENYLIST)",
            "  ./.agent-sandbox/allowlist.txt, ./.agent-sandbox/denylist.txt",
            "",
            "Examples:",
            "",
            "  # Run claude with internet access but no access to host services",
            "  agent-sandbox",
            "",
            "  # Give the agent a writable cache and hide a secrets directory",
            "  agent-sandbox --allow ~/.cache/pip:rw --deny config/secrets",
            "",
            "  # Inspect what the sandbox sees",
            "  agent-sandbox --agent shell --network isolated",
        ]
        return "\n".join(lines) + "\n"


class OrderedAppendAction(argparse.Action):
    """Append (kind, value) to a list shared by an allow flag and its deny twin."""

    def __call__(self, parser, namespace, values, option_string=None):
        items = list(getattr(namespace, self.dest, None) or [])
        items.append((self.const, values))
        setattr(namespace, self.dest, items)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for agent-sandbox CLI."""
    parser = argparse.ArgumentParser(
        prog="agent-sandbox",
        formatter_class=SandboxHelpFormatter,
        add_help=True,
    )

    parser.add_argument("--version", action="version", version=f"agent-sandbox {AGENT_SANDBOX_VERSION}")
    parser.add_argument("--agent", metavar="NAME", default="claude", help=argparse.SUPPRESS)

    # Filesystem policy
    # Allow and deny spellings share a dest so the command-line order survives
    parser.add_argument(
        "--allowlist", "--whitelist", dest="lists", metavar="FILE", action=OrderedAppendAction,
        const=DirectiveKind.ALLOW, default=[], help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--denylist", "--blacklist", dest="lists", metavar="FILE", action=OrderedAppendAction,
        const=DirectiveKind.DENY, help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--allow", dest="entries", metavar="PATH", action=OrderedAppendAction,
        const=DirectiveKind.ALLOW, default=[], help=argparse.SUPPRESS,
    )
    parser.add_argument(
        "--deny", dest="entries", metavar="PATTERN", action=OrderedAppendAction,
        const=DirectiveKind.DENY, help=argparse.SUPPRESS,
    )
    parser.add_argument("--no-auto-create", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--no-project", action="store_true", help=argparse.SUPPRESS)

    # Network
    parser.add_argument(
        "--network", choices=[m.value for m in NetworkMode], default=NetworkMode.RESTRICTED.value,
        help=argparse.SUPPRESS,
    )
    parser.add_argument("--allow-local-net", action="store_true", help=argparse.SUPPRESS)

    # Modes
    parser.add_argument("--dry-run", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--review", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--clean", action="store_true", help=argparse.SUPPRESS)

    # Agent arguments (everything after --)
    parser.add_argument("agent_args", nargs="*", help=argparse.SUPPRESS)

    return parser


def parse_args(argv: list[str] | None = None) -> ParsedArgs:
    """Parse command line arguments.

    Standalone actions (--clean, --version, --help) exit here.
    """
    parser = create_parser()

    # Handle -- separator: everything after it goes to the agent untouched,
    # including things that look like our own flags
    argv = sys.argv[1:] if argv is None else list(argv)
    if "--" in argv:
        sep_idx = argv.index("--")
        own_args = argv[:sep_idx]
        agent_args = argv[sep_idx + 1 :]
    else:
        own_args = argv
        agent_args = []

    args = parser.parse_args(own_args)

    if args.clean:
        removed, failed = clean_stale_dirs()
        print(f"Removed {removed} temporary director{'y' if removed == 1 else 'ies'}.")
        sys.exit(1 if failed else 0)

    network = NetworkMode.FULL if args.allow_local_net else NetworkMode(args.network)

    return ParsedArgs(
        agent=args.agent,
        agent_args=agent_args or args.agent_args,
        lists=args.lists,
        entries=args.entries,
        auto_create=not args.no_auto_create,
        use_project=not args.no_project,
        network=network,
        dry_run=args.dry_run,
        review=args.review,
    )


def build_sandbox(args: ParsedArgs, env: Environment) -> tuple[SandboxConfig, list[str]]:
    """Resolve everything needed to launch, without spawning anything.

    Returns:
        (config, warnings)

    Raises:
        ConfigError: For unusable configuration
        AgentNotFoundError: If the agent or its executable is missing
        ExecutorNotFoundError: If bwrap is missing (not checked for --dry-run)
    """
    # Before anything is written to disk
    if not args.dry_run:
        check_executor()

    policy = load_policy(env, args.policy_request())

    agent = get_agent(args.agent, env)
    agent_ops, notes = prepare_binds(agent)
    for note in notes:
        log.info(note)

    network = net.resolve_network(args.network, net.available())

    extra = [*net.host_file_operations(network), *agent_ops]
    result = resolve_plan(policy, env.cwd, home=env.home, extra_operations=extra)
    if not is_path_covered(agent.executable, result.plan):
        result.plan.add(MountOperation.bind(str(agent.executable)))

    config = SandboxConfig(
        command=[str(agent.executable), *args.agent_args],
        working_dir=env.cwd,
        plan=result.plan,
        network=network,
        env_vars=sandbox_environment(env, agent),
    )

    warnings = policy.warnings + result.warnings
    if not args.dry_run:
        print_configuration_summary(env.cwd, policy, result.plan, network, agent.name)
    return config, warnings


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    env = Environment.from_os()
    log_path = configure_logging(env)
    log.info(f"agent-sandbox {AGENT_SANDBOX_VERSION} in {env.cwd} (log: {log_path})")

    try:
        config, warnings = build_sandbox(args, env)
        for warning in warnings:
            log.warning(warning)
        print_warnings(warnings)

        launcher = Launcher(config)
        if args.dry_run:
            print(shlex.join(launcher.preview_command()))
            sys.exit(0)

        if args.review:
            review_warnings = warnings + list(config.network.warnings)
            app = PlanReviewApp(launcher.preview(), review_warnings, version=AGENT_SANDBOX_VERSION)
            app.run()
            if not app.should_launch:
                print("Cancelled.")
                sys.exit(0)

        exit_code = launcher.run()
    except ConfigError as e:
        print_error_box("Invalid sandbox configuration", str(e), "", e.hint)
        sys.exit(EXIT_CONFIG_ERROR)
    except AgentNotFoundError as e:
        print_error_box("Agent not available", str(e), "", e.hint)
        sys.exit(EXIT_CONFIG_ERROR)
    except ExecutorNotFoundError as e:
        print_error_box("bubblewrap is required", str(e), "", f"Install with: {e.hint}")
        sys.exit(EXIT_CONFIG_ERROR)
    except OSError as e:
        print_error_box("Could not prepare the sandbox", str(e))
        sys.exit(EXIT_CONFIG_ERROR)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
