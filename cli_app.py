"""Interactive chat CLI for trying the Cashé NLP bot locally."""

import asyncio
import sys
from typing import List, Optional
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.text import Text
from rich import box

from cashe.agents.nlp_agent import NLPAgent
from cashe.config.ai_config import get_ai_client, get_ai_model, is_ai_enabled
from cashe.agents.llm_fallback import LLMFallback
from cashe.schemas.core import MessageButton, Platform, ProcessMessageResult
from cashe.utils.config import settings
from cashe.utils.logger import get_logger
from cashe.utils.memory_store import build_memory_repositories, seed_demo_user

logger = get_logger("cli_app")
console = Console()

PLATFORM_USER_ID = "local"


class CasheCLI:
    """Chat with the bot against in-memory demo data."""

    def __init__(self):
        self.running = True
        identity, ledger, states = build_memory_repositories()
        self.user_id = seed_demo_user(identity, Platform.TELEGRAM, PLATFORM_USER_ID)
        self.identity = identity
        self.ledger = ledger
        self.agent = NLPAgent(
            identity, ledger, states,
            llm=LLMFallback(ai_client=get_ai_client(), ai_model=get_ai_model(), ai_enabled=is_ai_enabled()),
        )
        self.buttons: List[MessageButton] = []

    def display_header(self):
        """Display application header."""
        header = Panel(
            Text(f"{settings.app_name} v{settings.app_version}", justify="center", style="bold blue"),
            box=box.DOUBLE,
            style="blue"
        )
        console.print(header)
        console.print("[dim]Escribí como en Telegram. #N aprieta el botón N, /cuentas lista las cuentas, "
                      "/salir termina.[/dim]")
        console.print()

    def display_error(self, message: str):
        """Display error message."""
        console.print(f"[bold red]Error:[/bold red] {message}")
        console.print()

    def display_reply(self, result: ProcessMessageResult):
        """Show the bot reply and its buttons."""
        style = "green" if result.success else "yellow"
        subtitle = result.new_state.value if result.new_state else None
        console.print(Panel(Text(result.response_text), title="🤖 Cashé", subtitle=subtitle, border_style=style))

        self.buttons = result.buttons
        if self.buttons:
            table = Table(box=box.SIMPLE, show_header=False)
            table.add_column("#", style="cyan", width=4)
            table.add_column("Botón")
            for i, button in enumerate(self.buttons, 1):
                table.add_row(f"#{i}", button.label)
            console.print(table)
        console.print()

    def display_accounts(self):
        """List the demo user's accounts and categories."""
        context = asyncio.run(self.identity.get_user_context(self.user_id))
        table = Table(title="Cuentas")
        table.add_column("Nombre", style="cyan")
        table.add_column("Moneda")
        table.add_column("Tipo")
        for account in context.accounts:
            kind = f"Tarjeta (cierre {account.closing_day})" if account.is_credit_card else "Cuenta"
            table.add_row(f"{account.icon or ''} {account.name}", account.currency, kind)
        console.print(table)

        table = Table(title="Categorías")
        table.add_column("Nombre", style="cyan")
        table.add_column("Tipo")
        for category in context.categories:
            table.add_row(f"{category.icon or ''} {category.name}",
                          "Gasto" if category.type == "expense" else "Ingreso")
        console.print(table)
        console.print()

    def button_token(self, text: str) -> Optional[str]:
        """'#2' -> token of the second button shown."""
        if not text.startswith("#") or not text[1:].isdigit():
            return None
        index = int(text[1:]) - 1
        if 0 <= index < len(self.buttons):
            return self.buttons[index].token
        return None

    def run(self):
        """Run the chat loop."""
        self.display_header()

        while self.running:
            try:
                text = input("👤 Vos: ").strip()
            except EOFError:
                break
            if not text:
                continue
            if text in ("/salir", "/exit", "/quit"):
                break
            if text == "/cuentas":
                self.display_accounts()
                continue

            try:
                token = self.button_token(text)
                if token:
                    result = asyncio.run(self.agent.process_callback(Platform.TELEGRAM, PLATFORM_USER_ID, token))
                else:
                    result = asyncio.run(self.agent.process_message(Platform.TELEGRAM, PLATFORM_USER_ID, text))
                self.display_reply(result)
            except KeyboardInterrupt:
                console.print("\n[yellow]Operation cancelled by user[/yellow]")
            except Exception as e:
                logger.error(f"Unexpected error in chat loop: {str(e)}")
                self.display_error(str(e))

        self.running = False
        console.print("\n[bold green]¡Gracias por usar Cashé! 👋[/bold green]")


def main():
    """Main entry point for CLI application."""
    try:
        cli = CasheCLI()
        cli.run()
    except KeyboardInterrupt:
        console.print("\n[yellow]Application terminated by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {str(e)}")
        console.print(f"\n[red]Fatal error: {str(e)}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
