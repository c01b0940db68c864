"""Main entry point for the repos CLI."""

from dotenv import load_dotenv
load_dotenv()

import sys
import json
import argparse
import logging
from typing import Any, Dict, List, Optional

from .config import (
    Config,
    get_config_value,
    get_cwd_config_path,
    get_home_config_path,
    load_config_data,
    load_config_file,
    parse_config_value,
    save_config,
    set_config_value,
)
from .core.github_client import (
    GitHubClient,
    GitHubError,
    filter_active_repos,
    get_auth_token,
    get_clone_url,
)
from .core.logger import setup_logging
from .core.repo_manager import RepoManager, failed_count
from .operations.registry import registry
from .utils.discovery import find_repos, filter_repos, pattern_to_regex
from .utils.progress import print_summary

logger = logging.getLogger('multirepo')


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog='repos',
        description='Run git operations across many repositories at once',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show status of every repository in the current directory
  repos status --fetch

  # Pull repositories matching a pattern, 4 at a time
  repos pull --filter "api-*" --parallel 4

  # Clone active repositories of an organization
  repos clone --org mycompany --days 30 --shallow

  # Run a command everywhere
  repos exec "git log -1 --oneline"
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    status = subparsers.add_parser('status', help=registry.get_or_raise('status').description)
    status.add_argument('--fetch', action='store_true', help='Fetch from remotes before checking status')
    status.add_argument('-s', '--summary', action='store_true', help='Show only summary counts')
    _add_common_args(status)

    fetch = subparsers.add_parser('fetch', help=registry.get_or_raise('fetch').description)
    fetch.add_argument('--prune', action='store_true', help='Remove remote-tracking refs that no longer exist')
    fetch.add_argument('-a', '--all', action='store_true', dest='all_remotes', help='Fetch from all remotes')
    _add_common_args(fetch)

    pull = subparsers.add_parser('pull', aliases=['update'], help=registry.get_or_raise('pull').description)
    pull.add_argument('-n', '--dry-run', action='store_true', help='Show what would be updated without pulling')
    _add_common_args(pull)

    clone = subparsers.add_parser('clone', help=registry.get_or_raise('clone').description)
    clone.add_argument('-o', '--org', help='GitHub organization or username (overrides REPOS_ORG)')
    clone.add_argument('-d', '--days', type=int, help='Activity threshold in days (default: 90)')
    clone.add_argument('-s', '--shallow', action='store_true', help='Shallow clone (--depth 1)')
    clone.add_argument('--ssh', action='store_true', help='Clone over SSH instead of HTTPS')
    clone.add_argument('-n', '--dry-run', action='store_true', help='Show what would be cloned without cloning')
    _add_common_args(clone)

    clean = subparsers.add_parser('clean', help=registry.get_or_raise('clean').description)
    clean.add_argument('-a', '--all', action='store_true', dest='include_untracked',
                       help='Also remove untracked files')
    clean.add_argument('-n', '--dry-run', action='store_true', help='Show what would be cleaned without cleaning')
    _add_common_args(clean)

    checkout = subparsers.add_parser('checkout', help=registry.get_or_raise('checkout').description)
    checkout.add_argument('branch', help='Branch to switch to')
    checkout.add_argument('-b', '--create', action='store_true', help='Create the branch')
    _add_common_args(checkout)

    diff = subparsers.add_parser('diff', help=registry.get_or_raise('diff').description)
    diff.add_argument('--stat', action='store_true', dest='stat_only', help='Show only the diffstat')
    _add_common_args(diff)

    exec_parser = subparsers.add_parser('exec', help=registry.get_or_raise('exec').description)
    exec_parser.add_argument('exec_command', metavar='COMMAND', help='Shell command to run')
    _add_common_args(exec_parser)

    config = subparsers.add_parser('config', help='Read or write .reposrc.json settings')
    action = config.add_mutually_exclusive_group()
    action.add_argument('--get', metavar='KEY', help='Print a value (dotted key, e.g. github.host)')
    action.add_argument('--set', metavar='KEY', help='Set a value (requires --value)')
    action.add_argument('--list', action='store_true', help='Print the effective configuration')
    config.add_argument('--value', help='Value for --set (JSON scalars are parsed)')
    config.add_argument('--location', choices=['cwd', 'home'], default='cwd',
                        help='Config file written by --set (default: cwd)')

    return parser


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser.

    Args:
        parser: Parser to add arguments to
    """
    # Repository selection
    select_group = parser.add_argument_group('repository selection')
    select_group.add_argument(
        '-f', '--filter',
        metavar='PATTERN',
        help='Filter repositories by name pattern (e.g., "api-*")'
    )
    select_group.add_argument(
        '--repos-dir',
        help='Directory containing the repositories (default: current directory)'
    )

    # Execution control
    exec_group = parser.add_argument_group('execution control')
    exec_group.add_argument(
        '-p', '--parallel',
        type=int,
        metavar='N',
        help='Number of parallel operations (overrides REPOS_PARALLEL, default: 10)'
    )
    exec_group.add_argument(
        '--timeout',
        type=int,
        metavar='MS',
        help='Per-operation timeout in milliseconds (overrides REPOS_TIMEOUT, default: 30000)'
    )
    exec_group.add_argument(
        '--kill-on-timeout',
        action='store_true',
        help='Kill git processes that exceed the timeout instead of abandoning them'
    )

    # Output
    output_group = parser.add_argument_group('output')
    output_group.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log every git invocation'
    )
    output_group.add_argument(
        '--log-file',
        metavar='PATH',
        help='Also write logs to a file (default: REPOS_LOG_DIR/repos_<command>_<timestamp>.log)'
    )


def run_config_command(args: argparse.Namespace) -> int:
    """Handle `repos config`.

    Returns:
        Exit code
    """
    if args.set:
        if args.value is None:
            logger.error("--set requires --value")
            return 1
        path = get_cwd_config_path() if args.location == 'cwd' else get_home_config_path()
        data = load_config_file(path) or {}
        value = parse_config_value(args.value)
        try:
            data = set_config_value(data, args.set, value)
        except ValueError as e:
            logger.error(f"Configuration error: {e}")
            return 1
        written = save_config(data, args.location)
        print(f"Set {args.set} = {json.dumps(value)} in {written}")
        return 0

    data = load_config_data()
    if args.get:
        value = get_config_value(data, args.get)
        if value is None:
            logger.error(f"Unknown config key: {args.get}")
            return 1
        print(json.dumps(value) if isinstance(value, (dict, list)) else value)
        return 0

    print(json.dumps(data, indent=2))
    return 0


def list_clone_targets(config: Config) -> List[Dict[str, Any]]:
    """List active repositories of the configured organization.

    Raises:
        ValueError: If no organization is configured
    """
    if not config.org:
        raise ValueError("No organization specified. Use --org, REPOS_ORG or 'repos config --set org'")

    client = GitHubClient(
        api_url=config.github_api_url,
        token=get_auth_token(config.github_host),
        timeout_ms=config.timeout_ms,
        host=config.github_host
    )
    logger.info(f"Fetching repositories for {config.org} from {config.github_host}...")
    repos = client.list_repos(config.org)
    active = filter_active_repos(repos, config.days_threshold)
    logger.info(f"{len(active)} of {len(repos)} repositories active in the last {config.days_threshold} days")
    return active


def operation_kwargs(args: argparse.Namespace) -> Dict[str, Any]:
    """Build constructor arguments for the selected operation."""
    command = args.command
    if command == 'status':
        return {'summary_only': args.summary}
    if command == 'fetch':
        return {'prune': args.prune, 'all_remotes': args.all_remotes}
    if command == 'clone':
        return {
            'shallow': args.shallow,
            'clone_url_getter': lambda repo: get_clone_url(repo, prefer_ssh=args.ssh),
        }
    if command == 'clean':
        return {'include_untracked': args.include_untracked}
    if command == 'checkout':
        return {'branch': args.branch, 'create': args.create}
    if command == 'diff':
        return {'stat_only': args.stat_only}
    if command == 'exec':
        return {'command': args.exec_command}
    return {}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'config':
        setup_logging(operation='config')
        return run_config_command(args)

    # Normalise the `update` alias
    operation_class = registry.get_or_raise(args.command)
    args.command = operation_class.name

    setup_logging(operation=args.command, verbose=args.verbose, log_file=args.log_file)

    try:
        config = Config.from_env_and_args(
            parallel=args.parallel,
            timeout_ms=args.timeout,
            org=getattr(args, 'org', None),
            days=getattr(args, 'days', None),
            kill_on_timeout=args.kill_on_timeout,
            base_dir=args.repos_dir
        )

        logger.debug(f"Configuration loaded: {config}")

        if args.command == 'clone':
            items = list_clone_targets(config)
            if args.filter:
                regex = pattern_to_regex(args.filter)
                items = [repo for repo in items if regex.match(repo["name"])]
        else:
            items = find_repos(config.base_dir)
            if not items:
                logger.warning(f"No repositories found in {config.base_dir}")
                return 0
            if args.filter:
                items = filter_repos(items, args.filter)

        if not items:
            logger.warning("No repositories match the filter criteria")
            return 0

        operation = operation_class(
            config,
            dry_run=getattr(args, 'dry_run', False),
            **operation_kwargs(args)
        )
        manager = RepoManager(concurrency=config.parallel)

        fetch_failures = 0
        if args.command == 'status' and args.fetch:
            fetch_op = registry.get_or_raise('fetch')(config)
            fetched = manager.execute_operation(fetch_op, items)
            fetch_failures = failed_count(fetched.collected)
            if fetch_failures:
                print_summary(fetched.collected, 'fetch', total=len(items), cancelled=fetched.cancelled)
            if fetched.cancelled:
                return 130

        pool_result = manager.execute_operation(operation, items)
        results = pool_result.collected

        if operation.summarize:
            print_summary(results, operation.name, total=len(items), cancelled=pool_result.cancelled)
        elif pool_result.cancelled:
            print(f"\nCancelled: {len(results)} of {len(items)} processed")

        if pool_result.cancelled:
            return 130
        return 1 if failed_count(results) > 0 or fetch_failures > 0 else 0

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except (GitHubError, TimeoutError, ConnectionError) as e:
        logger.error(f"GitHub error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("\nOperation cancelled by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
