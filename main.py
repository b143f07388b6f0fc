"""
Main CLI Entry Point
Command-line interface for pointing domains at GitHub Pages:
- plan / apply / status of a deployment
- push local files to the repository
- track / list / forget local deployment records
"""

import sys
import json
import argparse
from pathlib import Path

from gg_deploy import __version__
from gg_deploy.models import CommandResult, FailedStep, PlanResult, PushResult, StatusResult, PROVIDER_NAMES
from gg_deploy.services import DeploymentOrchestrator, DeploymentStore
from gg_deploy.utils.config import get_settings
from gg_deploy.utils.logger import get_logger, set_log_level
from gg_deploy.utils.validators import DomainValidator

logger = get_logger(__name__)

APPLY_EXIT_CODES = {"success": 0, "partial_success": 2, "failure": 3}


def _orchestrator(args) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(config=get_settings(), provider_name=args.provider)


def _emit_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def _print_steps(result: CommandResult) -> None:
    for step in result.completed_steps:
        print(f"  ✅ {step}")
    for failed in result.failed_steps:
        retry_hint = " (retriable)" if failed.retriable else ""
        print(f"  ❌ {failed.step}: {failed.error}{retry_hint}")
        if failed.suggestion:
            print(f"     → {failed.suggestion}")


def _print_notes(result: CommandResult) -> None:
    for note in result.notes:
        print(f"  • {note}")
    if result.next_action:
        wait = f" (~{result.estimated_wait_seconds // 60} min)" if result.estimated_wait_seconds else ""
        print(f"  Next: {result.next_action}{wait}")


def cmd_plan(args):
    """Show what apply would change"""
    result: PlanResult = _orchestrator(args).plan(args.domain, args.repo)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        print(f" PLAN: {result.domain} -> {result.repo} ({result.provider or 'no provider'})")
        print(f"{'='*60}")
        _print_steps(result)
        if result.dns_changes:
            print("\n  DNS changes:")
            for change in result.dns_changes:
                record = change.record
                current = f" (currently {change.current})" if change.action == "MODIFY" else ""
                print(f"    {change.action:<7} {record.type:<6} {record.name:<5} {record.data}{current}")
        if result.github_changes:
            print("\n  GitHub changes:")
            for change in result.github_changes:
                print(f"    {change.action:<7} {change.resource}: {change.details}")
        for warning in result.warnings:
            print(f"  ⚠️  {warning}")
        _print_notes(result)
        print(f"{'='*60}\n")

    sys.exit(0 if result.status == "success" else 1)


def cmd_apply(args):
    """Configure DNS and GitHub Pages"""
    local_path = Path(args.path).resolve() if args.path else Path.cwd()
    result = _orchestrator(args).apply(args.domain, args.repo, local_path=local_path)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        print(f" APPLY: {args.domain} -> {args.repo} [{result.status.upper()}]")
        print(f"{'='*60}")
        _print_steps(result)
        for resource in result.resources_created:
            print(f"  + {resource}")
        for resource in result.resources_modified:
            print(f"  ~ {resource}")
        _print_notes(result)
        print(f"{'='*60}\n")

    sys.exit(APPLY_EXIT_CODES[result.status])


def cmd_status(args):
    """Check DNS, GitHub Pages and SSL health"""
    repo = args.repo
    if not repo:
        deployment = DeploymentStore(config=get_settings()).get(args.domain)
        if deployment is None:
            error = f"No repository given and {args.domain} is not tracked"
            logger.error(f"❌ {error}")
            if args.output == "json":
                result = StatusResult(
                    status="failure",
                    domain=DomainValidator.normalize(args.domain),
                    repo="",
                    failed_steps=[FailedStep(
                        step="find_deployment",
                        error=error,
                        retriable=False,
                        suggestion="Pass the repository or record it with `gg-deploy track`"
                    )]
                )
                _emit_json(result.model_dump(mode="json"))
            sys.exit(1)
        repo = deployment.repo

    result: StatusResult = _orchestrator(args).status(args.domain, repo)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        print(f" STATUS: {result.domain} [{result.health.upper()}]")
        print(f"{'='*60}")
        print(f"  Repository:     {result.repo}")
        print(f"  Provider:       {result.provider or 'N/A'}")
        print(f"  DNS configured: {'YES' if result.dns_configured else 'NO'}")
        for record in result.dns_records:
            print(f"    {record.type:<6} {record.name:<5} {record.data}")
        print(f"  GitHub Pages:   {'ENABLED' if result.github_pages_enabled else 'NOT ENABLED'}")
        if result.github_pages_url:
            print(f"  URL:            {result.github_pages_url}")
        print(f"  SSL:            {result.ssl_status}")
        _print_steps(result)
        _print_notes(result)
        print(f"{'='*60}\n")

    sys.exit(0 if result.status == "success" else 1)


def cmd_list(args):
    """List tracked deployments"""
    deployments = _orchestrator(args).list_deployments()

    if args.output == "json":
        _emit_json([d.model_dump(mode="json", by_alias=True) for d in deployments])
    else:
        print(f"\n{'='*60}")
        print(f" TRACKED DEPLOYMENTS ({len(deployments)})")
        print(f"{'='*60}")
        for d in deployments:
            print(f"  {d.domain:<30} {d.repo:<30} {d.provider}")
            print(f"    {d.local_path}  (last activity {d.last_activity:%Y-%m-%d %H:%M})")
        print(f"{'='*60}\n")

    sys.exit(0)


def _split_push_args(values, store: DeploymentStore):
    """
    Interpret `push [domain] [message]`.

    With one value it is a domain only when it is tracked (or looks like a
    domain and contains no spaces); otherwise it is the commit message.
    """
    if not values:
        return None, None
    if len(values) >= 2:
        return values[0], " ".join(values[1:])

    value = values[0]
    if store.get(value) is not None:
        return value, None
    if " " not in value and DomainValidator.DOMAIN_REGEX.match(DomainValidator.normalize(value)):
        return value, None
    return None, value


def cmd_push(args):
    """Sync local files to the deployment's repository"""
    orchestrator = _orchestrator(args)
    domain, message = _split_push_args(args.values, orchestrator.store)

    def progress(path, action):
        if args.output != "json":
            print(f"  [{action}] {path}")

    result: PushResult = orchestrator.push(domain=domain, message=message, on_progress=progress)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        if result.success:
            print(f" PUSHED {len(result.files_changed)} FILES: {result.domain} -> {result.repo}")
        else:
            print(f" PUSH FAILED: {result.domain or 'unknown deployment'}")
        print(f"{'='*60}")
        if not result.files_changed and result.success:
            print("  Everything up to date")
        for change in result.files_changed:
            print(f"  {change.action:<7} {change.path}")
        for path in result.skipped_large:
            print(f"  ⚠️  skipped (over 100MB): {path}")
        for path in result.warned_large:
            print(f"  ⚠️  large file: {path}")
        if result.error:
            print(f"  {'⚠️ ' if result.success else '❌'} {result.error}")
        print(f"{'='*60}\n")

    sys.exit(0 if result.success else 1)


def cmd_forget(args):
    """Stop tracking a deployment"""
    result = _orchestrator(args).forget(args.domain)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        print(f" FORGET: {args.domain} [{result.status.upper()}]")
        print(f"{'='*60}")
        _print_steps(result)
        _print_notes(result)
        print(f"{'='*60}\n")

    sys.exit(0 if result.status == "success" else 1)


def cmd_track(args):
    """Record an existing deployment"""
    local_path = Path(args.path).resolve() if args.path else Path.cwd()
    result = _orchestrator(args).track(args.domain, args.repo, local_path=local_path, provider_name=args.provider)

    if args.output == "json":
        _emit_json(result.model_dump(mode="json"))
    else:
        print(f"\n{'='*60}")
        print(f" TRACK: {args.domain} -> {args.repo} [{result.status.upper()}]")
        print(f"{'='*60}")
        _print_steps(result)
        print(f"{'='*60}\n")

    sys.exit(0 if result.status == "success" else 1)


def describe() -> dict:
    """Machine-readable description of the commands for agents"""
    return {
        "name": "gg-deploy",
        "version": __version__,
        "description": "Point a domain at GitHub Pages and sync site files",
        "commands": {
            "plan": {
                "args": ["domain", "repo"],
                "safety": "read-only",
                "side_effects": [],
                "exit_codes": {"0": "success", "1": "verification failed"}
            },
            "apply": {
                "args": ["domain", "repo", "--path"],
                "safety": "mutating",
                "side_effects": ["dns_records", "github_cname_file", "github_pages_settings", "deployment_record"],
                "idempotent": True,
                "exit_codes": {"0": "success", "2": "partial_success", "3": "failure"}
            },
            "status": {
                "args": ["domain", "repo?"],
                "safety": "read-only",
                "side_effects": [],
                "exit_codes": {"0": "all checks ran", "1": "a check failed"}
            },
            "list": {
                "args": [],
                "safety": "read-only",
                "side_effects": [],
                "exit_codes": {"0": "success"}
            },
            "push": {
                "args": ["domain?", "message?"],
                "safety": "mutating",
                "side_effects": ["github_commits"],
                "idempotent": True,
                "exit_codes": {"0": "success", "1": "failure"}
            },
            "track": {
                "args": ["domain", "repo", "--path", "--provider"],
                "safety": "local-only",
                "side_effects": ["deployment_record"],
                "exit_codes": {"0": "success", "1": "failure"}
            },
            "forget": {
                "args": ["domain"],
                "safety": "local-only",
                "side_effects": ["deployment_record"],
                "notes": "DNS records and GitHub Pages are not changed",
                "exit_codes": {"0": "success", "1": "not tracked"}
            }
        },
        "providers": list(PROVIDER_NAMES)
    }


def cmd_describe(args):
    """Print the tool description"""
    _emit_json(describe())
    sys.exit(0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gg-deploy",
        description="Point a domain at GitHub Pages and keep the site in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview the changes
  gg-deploy plan example.com octocat/site

  # Configure DNS and GitHub Pages, and track the current directory
  gg-deploy apply example.com octocat/site

  # Check health (repo looked up from the tracked deployment)
  gg-deploy status example.com

  # Upload changed files from the tracked directory
  gg-deploy push "Update landing page"

  # Stop tracking (DNS and Pages are left alone)
  gg-deploy forget example.com
        """
    )

    parser.add_argument("--version", action="version", version=f"gg-deploy {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--output", choices=["human", "json"], default="human", help="Output format (default: human)")
    common.add_argument("--provider", choices=list(PROVIDER_NAMES), help="DNS provider (default: from config)")
    common.add_argument("--verbose", action="store_true", help="Show debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ==================== PLAN / APPLY ====================
    plan_parser = subparsers.add_parser("plan", parents=[common], help="Preview DNS and GitHub changes")
    plan_parser.add_argument("domain", help="Domain name")
    plan_parser.add_argument("repo", help="GitHub repository (owner/name)")
    plan_parser.set_defaults(func=cmd_plan)

    apply_parser = subparsers.add_parser("apply", parents=[common], help="Configure DNS and GitHub Pages")
    apply_parser.add_argument("domain", help="Domain name")
    apply_parser.add_argument("repo", help="GitHub repository (owner/name)")
    apply_parser.add_argument("--path", help="Local site directory to track (default: current directory)")
    apply_parser.set_defaults(func=cmd_apply)

    # ==================== STATUS ====================
    status_parser = subparsers.add_parser("status", parents=[common], help="Check deployment health")
    status_parser.add_argument("domain", help="Domain name")
    status_parser.add_argument("repo", nargs="?", help="GitHub repository (default: tracked deployment)")
    status_parser.set_defaults(func=cmd_status)

    # ==================== TRACKING ====================
    list_parser = subparsers.add_parser("list", parents=[common], help="List tracked deployments")
    list_parser.set_defaults(func=cmd_list)

    push_parser = subparsers.add_parser("push", parents=[common], help="Upload changed files")
    push_parser.add_argument("values", nargs="*", metavar="[domain] [message]", help="Domain and/or commit message")
    push_parser.set_defaults(func=cmd_push)

    forget_parser = subparsers.add_parser("forget", parents=[common], help="Stop tracking a deployment")
    forget_parser.add_argument("domain", help="Domain name")
    forget_parser.set_defaults(func=cmd_forget)

    track_parser = subparsers.add_parser("track", parents=[common], help="Track an existing deployment")
    track_parser.add_argument("domain", help="Domain name")
    track_parser.add_argument("repo", help="GitHub repository (owner/name)")
    track_parser.add_argument("--path", help="Local site directory (default: current directory)")
    track_parser.set_defaults(func=cmd_track)

    # ==================== AGENTS ====================
    describe_parser = subparsers.add_parser("describe", help="Print a machine-readable tool description")
    describe_parser.set_defaults(func=cmd_describe)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    set_log_level("DEBUG" if getattr(args, "verbose", False) else get_settings().log_level)

    args.func(args)


if __name__ == "__main__":
    main()
