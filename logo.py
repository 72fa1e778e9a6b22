import os
import logging

from colorama import Fore, Style, init

from project_info import NAME, VERSION, DESCRIPTION

# Initialize colorama
init(autoreset=True)

logger = logging.getLogger(__name__)

LOGO = f"""
{Fore.CYAN}
██╗   ██╗███████╗ ██████╗ ██████╗ ██████╗ ███████╗     █████╗ ██╗   ██╗ ██████╗ ███╗   ███╗███████╗███╗   ██╗████████╗
██║   ██║██╔════╝██╔════╝██╔═══██╗██╔══██╗██╔════╝    ██╔══██╗██║   ██║██╔════╝ ████╗ ████║██╔════╝████╗  ██║╚══██╔══╝
██║   ██║███████╗██║     ██║   ██║██║  ██║█████╗      ███████║██║   ██║██║  ███╗██╔████╔██║█████╗  ██╔██╗ ██║   ██║
╚██╗ ██╔╝╚════██║██║     ██║   ██║██║  ██║██╔══╝      ██╔══██║██║   ██║██║   ██║██║╚██╔╝██║██╔══╝  ██║╚██╗██║   ██║
 ╚████╔╝ ███████║╚██████╗╚██████╔╝██████╔╝███████╗    ██║  ██║╚██████╔╝╚██████╔╝██║ ╚═╝ ██║███████╗██║ ╚████║   ██║
  ╚═══╝  ╚══════╝ ╚═════╝ ╚═════╝ ╚═════╝ ╚══════╝    ╚═╝  ╚═╝ ╚═════╝  ╚═════╝ ╚═╝     ╚═╝╚══════╝╚═╝  ╚═══╝   ╚═╝
{Style.RESET_ALL}"""

# Simplified logo for terminals with limited width
SIMPLIFIED_LOGO = f"""
{Fore.CYAN}
██╗   ██╗███████╗ ██████╗ ██████╗ ██████╗ ███████╗
██║   ██║██╔════╝██╔════╝██╔═══██╗██╔══██╗██╔════╝
██║   ██║███████╗██║     ██║   ██║██║  ██║█████╗
╚██╗ ██╔╝╚════██║██║     ██║   ██║██║  ██║██╔══╝
 ╚████╔╝ ███████║╚██████╗╚██████╔╝██████╔╝███████╗
  ╚═══╝  ╚══════╝ ╚═════╝ ╚═════╝ ╚═════╝ ╚══════╝
{Fore.GREEN}AUGMENT CLEANER {VERSION}{Style.RESET_ALL}
"""


def get_terminal_width() -> int:
    try:
        return os.get_terminal_size().columns
    except OSError as e:
        logger.debug(f"Failed to get terminal width: {e}")
        return 80


def print_logo() -> None:
    """Print logo with version information based on terminal width."""
    terminal_width = get_terminal_width()
    print(LOGO if terminal_width >= 120 else SIMPLIFIED_LOGO)
    if DESCRIPTION:
        print(f"{Fore.CYAN}{DESCRIPTION}{Style.RESET_ALL}")
    print(f"{Fore.GREEN}{NAME} version: {VERSION}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'═' * min(80, terminal_width)}{Style.RESET_ALL}")


if __name__ == "__main__":
    print_logo()
