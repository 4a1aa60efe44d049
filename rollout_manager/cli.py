#!/usr/bin/env python3
"""
rollout-manager CLI entry point.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from rollout_manager.config import EnvironmentSettings, RolloutManagerConfig
from rollout_manager.config.settings import DEFAULT_CONFIG_PATH, DeployEnvironment
from rollout_manager.errors import ConfigurationError
from rollout_manager.logging_config import configure_logging
from rollout_manager.models import AgentNode, DeploymentTarget, DeployRequest
from rollout_manager.orchestrator import FleetOrchestrator

logger = logging.getLogger(__name__)


def resolve_log_dir(configured: str) -> str:
    """Use the configured directory if writable, else ~/.local/log/rollout-manager."""
    parent = Path(configured).parent
    if os.access(configured, os.W_OK) or os.access(parent, os.W_OK):
        return configured
    return str(Path.home() / ".local" / "log" / "rollout-manager")


def read_env_files(paths: List[str]) -> Optional[str]:
    """Concatenate env files in order; None when no files are configured."""
    if not paths:
        return None
    chunks = []
    for path in paths:
        env_path = Path(path)
        if not env_path.exists():
            raise ConfigurationError(f"Env file not found: {path}")
        chunks.append(env_path.read_text().rstrip("\n"))
    return "\n".join(chunks) + "\n"


def build_deploy_request(env: EnvironmentSettings, app: str, tag: str) -> DeployRequest:
    compose_path = Path(env.compose_file)
    if not compose_path.exists():
        raise ConfigurationError(f"Compose file not found: {env.compose_file}")
    return DeployRequest(
        app=app,
        tag=tag,
        compose=compose_path.read_text(),
        env=read_env_files(env.env_files),
    )


def build_nodes(config: RolloutManagerConfig, env: EnvironmentSettings) -> List[AgentNode]:
    token = config.rollout.require_access_token()
    return [AgentNode(url=url, access_token=token) for url in env.agent_urls]


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Sequential fleet rollouts of docker compose deployments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the agent endpoint on a fleet node
  rollout-manager --config /etc/rollout-manager/config.yml serve

  # Roll out the current compose file to staging
  rollout-manager deploy staging --app shop --tag v1.4.0

  # Restore the previous generation on every production node
  rollout-manager rollback production --app shop --tag v1.4.0
        """,
    )
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a default configuration file and exit",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration file and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("serve", help="Run the agent endpoint")

    environments = [e.value for e in DeployEnvironment]
    for name, help_text in (
        ("deploy", "Roll out a new generation to an environment"),
        ("rollback", "Restore the previous generation on every node of an environment"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("environment", choices=environments)
        sub.add_argument("--app", required=True, help="Application name")
        sub.add_argument("--tag", required=True, help="Deployment tag")

    health = subparsers.add_parser("health", help="Check agents of an environment")
    health.add_argument("environment", choices=environments)

    return parser


async def run_deploy(config: RolloutManagerConfig, args: argparse.Namespace) -> int:
    env = config.rollout.environment(args.environment)
    request = build_deploy_request(env, args.app, args.tag)
    orchestrator = FleetOrchestrator.with_audit_file(
        config.rollout.audit_log, request_timeout=config.rollout.request_timeout
    )
    result = await orchestrator.rollout(build_nodes(config, env), request)
    print(json.dumps(result.summary(), indent=2))
    return 0 if result.success else 1


async def run_rollback(config: RolloutManagerConfig, args: argparse.Namespace) -> int:
    env = config.rollout.environment(args.environment)
    orchestrator = FleetOrchestrator.with_audit_file(
        config.rollout.audit_log, request_timeout=config.rollout.request_timeout
    )
    outcomes = await orchestrator.rollback_fleet(
        build_nodes(config, env), DeploymentTarget(app=args.app, tag=args.tag)
    )
    print(json.dumps([o.model_dump() for o in outcomes], indent=2))
    return 0 if all(o.success for o in outcomes) else 1


async def run_health(config: RolloutManagerConfig, args: argparse.Namespace) -> int:
    env = config.rollout.environment(args.environment)
    orchestrator = FleetOrchestrator(request_timeout=config.rollout.request_timeout)
    # /health needs no credential
    token = config.rollout.access_token or ""
    nodes = [AgentNode(url=url, access_token=token) for url in env.agent_urls]
    status = await orchestrator.check_health(nodes)
    for url, healthy in status.items():
        print(f"{url}: {'healthy' if healthy else 'UNREACHABLE'}")
    return 0 if all(status.values()) else 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.generate_config:
        RolloutManagerConfig().save(args.config)
        print(f"Generated default configuration at: {args.config}")
        return 0

    try:
        config = RolloutManagerConfig.from_file(args.config)
    except Exception as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    if args.validate_config:
        print(f"Configuration valid: {args.config}")
        return 0

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(
        resolve_log_dir(config.logging.directory),
        console_level="DEBUG" if args.verbose else config.logging.console_level,
        file_level=config.logging.file_level,
        use_json=config.logging.use_json,
    )

    try:
        if args.command == "serve":
            from rollout_manager.server import serve_agent

            asyncio.run(serve_agent(config.agent))
            return 0
        if args.command == "deploy":
            return asyncio.run(run_deploy(config, args))
        if args.command == "rollback":
            return asyncio.run(run_rollback(config, args))
        return asyncio.run(run_health(config, args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except ConfigurationError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Error running rollout-manager: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
