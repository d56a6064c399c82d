#!/usr/bin/env python3
"""Interactive CLI for running the project assistant and reviewing its actions."""

import sys

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table


class AgentCLI:
    """Interactive interface for the project assistant service."""

    def __init__(self, base_url: str = "http://localhost:8000", company_id: str = "company_demo"):
        """Initialize agent CLI."""
        self.base_url = base_url
        self.company_id = company_id
        self.project_id: str | None = None
        self.conversation_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=120.0)

    def start(self) -> None:
        """Start the interactive session."""
        self.console.print(
            Panel.fit(
                "[bold blue]Project Agent - Interactive Runner[/bold blue]\n"
                "Describe the project situation to run the assistant.\n"
                "Commands: /project <id>, /actions, /approve <id>, /reject <id>, /retry <id>, "
                "/assign <id> <contact_id>, /new, /help, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to project agent service[/green]\n")
        self.project_id = Prompt.ask("[bold cyan]Project ID[/bold cyan]", default="project_maple")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]").strip()
                command, _, argument = user_input.partition(" ")

                if command.lower() in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                elif command == "/project" and argument:
                    self.project_id = argument.strip()
                    self.conversation_id = None
                    self.console.print(f"[yellow]Switched to project {self.project_id}[/yellow]")
                elif command == "/new":
                    self.conversation_id = None
                    self.console.print("[yellow]Conversation cleared[/yellow]")
                elif command == "/actions":
                    self._show_actions()
                elif command in ("/approve", "/reject", "/retry") and argument:
                    self._decide(argument.strip(), command.lstrip("/"))
                elif command == "/assign" and len(argument.split()) == 2:
                    self._assign(*argument.split())
                elif user_input:
                    result = self._run(user_input)
                    if result:
                        self._display_result(result)

        except KeyboardInterrupt:
            pass
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _run(self, prompt: str) -> dict | None:
        """Start a run for the current project."""
        payload = {"project_id": self.project_id, "company_id": self.company_id, "prompt": prompt}
        if self.conversation_id:
            payload["conversation_id"] = self.conversation_id

        try:
            with self.console.status("Running agent..."):
                response = self.client.post(f"{self.base_url}/runs", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return None

        data = response.json()
        self.conversation_id = data.get("conversation_id")
        return data

    def _display_result(self, result: dict) -> None:
        """Display the run answer and metrics."""
        metrics = result.get("metrics", {})
        self.console.print(
            Panel(
                Markdown(result.get("answer", "No response")),
                title=f"[bold green]Assistant ({result.get('stop_reason')})[/bold green]",
                subtitle=(
                    f"{result.get('iterations')} iterations, {metrics.get('total_tokens', 0)} tokens, "
                    f"${metrics.get('usd_cost', 0):.4f}"
                ),
                border_style="green",
                padding=(1, 2),
            )
        )
        if result.get("action_record_ids"):
            self.console.print(f"[dim]Actions created: {', '.join(result['action_record_ids'])}[/dim]")

    def _show_actions(self) -> None:
        """List action records for the current project."""
        response = self.client.get(
            f"{self.base_url}/actions", params={"project_id": self.project_id, "company_id": self.company_id}
        )
        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return

        table = Table(title=f"Actions for {self.project_id}")
        table.add_column("ID")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Message")
        for action in response.json()["actions"]:
            table.add_row(action["id"], action["action_type"], action["status"], action.get("message") or "")
        self.console.print(table)

    def _decide(self, action_id: str, decision: str) -> None:
        """Approve, reject or retry an action."""
        response = self.client.post(
            f"{self.base_url}/actions/{action_id}/{decision}", json={"company_id": self.company_id}
        )
        self._show_action_update(action_id, response)

    def _assign(self, action_id: str, contact_id: str) -> None:
        """Point a message action at a contact."""
        response = self.client.put(
            f"{self.base_url}/actions/{action_id}/recipient",
            json={"company_id": self.company_id, "recipient_id": contact_id},
        )
        self._show_action_update(action_id, response)

    def _show_action_update(self, action_id: str, response: httpx.Response) -> None:
        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return

        action = response.json()
        self.console.print(f"[green]Action {action_id} is now {action['status']}[/green]")
        if action.get("execution_error"):
            self.console.print(f"[red]Execution failed: {action['execution_error']}[/red]")

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /project <id> - Switch project (starts a new conversation)
• /actions - List action records for the project
• /approve <id> / /reject <id> - Review a pending action
• /assign <id> <contact_id> - Set the recipient of a message action
• /retry <id> - Run an approved action again after it failed
• /new - Start a new conversation
• /quit or /exit - Exit

[bold]Demo data:[/bold]
Start the server with AGENT_SEED_DEMO=1 to load project_maple and project_oak.
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the agent CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    cli = AgentCLI(base_url)
    cli.start()


if __name__ == "__main__":
    main()
