"""
Quick script to verify DNS provider and GitHub credentials
Lists the domains each configured provider can see and checks the GitHub token

Usage:
    python examples/check_connections.py
"""

import sys
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gg_deploy.api import AuthenticationError, DNSProviderError, GitHubAPIError, GitHubClient, get_dns_provider
from gg_deploy.api.provider_factory import configured_providers
from gg_deploy.utils.config import get_settings

console = Console()


def check_provider(name: str) -> bool:
    """List domains with one provider's credentials"""
    console.print(f"\n[bold cyan]Checking {name}...[/bold cyan]\n")

    try:
        provider = get_dns_provider(name, get_settings())

        console.print("[yellow]→ Fetching domains...[/yellow]")
        domains = provider.list_domains()

        console.print(Panel(
            f"[bold green]✅ {name} credentials work[/bold green]\n\n"
            f"Found [cyan]{len(domains)}[/cyan] domain(s).",
            title="Connection Test",
            border_style="green"
        ))

        if domains:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Domain", style="cyan")
            table.add_column("Status", style="green")
            for info in domains[:10]:
                table.add_row(info.domain, info.status)
            console.print(table)

        return True

    except AuthenticationError as e:
        console.print(Panel(
            f"[bold red]❌ Authentication Failed[/bold red]\n\n"
            f"{str(e)}\n\n"
            f"[yellow]→ {e.suggestion or 'Check your credentials'}[/yellow]",
            title="Error",
            border_style="red"
        ))
        return False

    except DNSProviderError as e:
        console.print(Panel(
            f"[bold red]❌ Provider Error[/bold red]\n\n{str(e)}",
            title="Error",
            border_style="red"
        ))
        return False


def check_github() -> bool:
    """Resolve the GitHub token and call /user"""
    console.print("\n[bold cyan]Checking GitHub...[/bold cyan]\n")

    try:
        client = GitHubClient.from_settings(get_settings())
        user = client.request("GET", "/user")

        console.print(Panel(
            f"[bold green]✅ GitHub token works[/bold green]\n\n"
            f"Authenticated as [cyan]{user.get('login', 'unknown')}[/cyan]",
            border_style="green"
        ))
        return True

    except GitHubAPIError as e:
        console.print(Panel(
            f"[bold red]❌ GitHub Error[/bold red]\n\n{str(e)}",
            title="Error",
            border_style="red"
        ))
        return False


def main():
    """Run all checks"""
    console.print(Panel.fit(
        "[bold magenta]🚀 gg-deploy Connection Check[/bold magenta]\n"
        "[dim]Verifying DNS provider and GitHub credentials[/dim]",
        border_style="magenta"
    ))

    providers = configured_providers(get_settings())
    if not providers:
        console.print("\n[bold red]⚠️  No DNS provider credentials found. Copy .env.example to .env first.[/bold red]")

    results = [check_provider(name) for name in providers]
    results.append(check_github())

    console.print("\n" + "="*60)
    if all(results):
        console.print(Panel.fit("[bold green]✅ All checks passed![/bold green]", border_style="green"))
    else:
        console.print(Panel.fit("[bold yellow]⚠️  Some checks failed[/bold yellow]", border_style="yellow"))
        sys.exit(1)


if __name__ == "__main__":
    main()
