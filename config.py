import os
import shutil
import logging
import tempfile
import datetime
import configparser
from typing import Optional, Dict, Any, Tuple

from colorama import Fore, Style, init

from utils import SystemPaths, get_user_documents_path, resolve_system_paths

# Initialize colorama
init(autoreset=True)

logger = logging.getLogger(__name__)

# Define emoji constants
EMOJI = {
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "SUCCESS": "✅",
    "SETTINGS": "⚙️",
    "CONFIG": "📝"
}

CONFIG_DIR_NAME = ".vscode-augment-cleaner"
CONFIG_FILE_NAME = "config.ini"
LOG_FILE_NAME = "vscode_augment_cleaner.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Global config cache
_config_cache = None


def get_default_config_dir() -> str:
    return os.path.normpath(os.path.join(get_user_documents_path(), CONFIG_DIR_NAME))


class ConfigManager:
    """Class to manage configuration operations"""

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: Directory holding config.ini; <Documents>/.vscode-augment-cleaner when omitted
        """
        self.config = configparser.ConfigParser()
        self.requested_dir = config_dir
        self.config_dir = None
        self.config_file = None

    def setup_config_directory(self) -> Tuple[str, str]:
        """Create the configuration directory, falling back to the temp dir if that fails.

        Returns:
            Tuple[str, str]: Configuration directory and file paths
        """
        config_dir = self.requested_dir or get_default_config_dir()
        dir_exists = os.path.exists(config_dir)
        try:
            os.makedirs(config_dir, exist_ok=True)
            if not dir_exists:
                logger.info(f"Config directory created: {config_dir}")
                print(f"{Fore.CYAN}{EMOJI['INFO']} Config directory created: {config_dir}{Style.RESET_ALL}")
        except OSError as e:
            logger.warning(f"Failed to create config directory: {e}")
            config_dir = os.path.normpath(os.path.join(tempfile.gettempdir(), CONFIG_DIR_NAME))
            os.makedirs(config_dir, exist_ok=True)
            print(f"{Fore.YELLOW}{EMOJI['WARNING']} Using temporary directory due to error: {config_dir} (Error: {e}){Style.RESET_ALL}")

        self.config_dir = config_dir
        self.config_file = os.path.join(config_dir, CONFIG_FILE_NAME)
        return self.config_dir, self.config_file

    def get_default_config(self) -> Dict[str, Dict[str, Any]]:
        config_dir = self.config_dir or self.requested_dir or get_default_config_dir()
        return {
            'Paths': {
                # empty means the platform default location
                'vscode_config_dir': ''
            },
            'Process': {
                'quit_timeout': '5',
                'relaunch_delay': '0.5',
                'close_before_clean': 'False',
                'reopen_after_clean': 'False'
            },
            'Workspace': {
                'preview_max_items': '100'
            },
            'Database': {
                'preview_limit': '50'
            },
            'Logging': {
                'log_level': 'INFO',
                'log_file': os.path.join(config_dir, LOG_FILE_NAME)
            }
        }

    def setup(self) -> configparser.ConfigParser:
        """Read config.ini, add any missing defaults and write it back.

        Returns:
            configparser.ConfigParser: Configured ConfigParser object
        """
        self.setup_config_directory()
        default_config = self.get_default_config()

        if os.path.exists(self.config_file):
            try:
                self.config.read(self.config_file, encoding='utf-8')
                logger.info(f"Read existing configuration from {self.config_file}")
            except configparser.Error as e:
                logger.error(f"Error reading config file: {e}")
                self.config = configparser.ConfigParser()

        for section, options in default_config.items():
            if not self.config.has_section(section):
                self.config.add_section(section)

            for option, value in options.items():
                if not self.config.has_option(section, option):
                    self.config.set(section, option, str(value))

        try:
            with open(self.config_file, 'w', encoding='utf-8') as f:
                self.config.write(f)
            logger.info(f"Configuration saved to {self.config_file}")
        except OSError as e:
            logger.error(f"Error saving config file: {e}")

        return self.config


def setup_config(config_dir: Optional[str] = None) -> configparser.ConfigParser:
    """Setup configuration file and return config object"""
    return ConfigManager(config_dir).setup()


def print_config(config: configparser.ConfigParser) -> None:
    if not config or not config.sections():
        print(f"{Fore.RED}{EMOJI['ERROR']} Configuration not available{Style.RESET_ALL}")
        return

    print(f"\n{Fore.CYAN}{EMOJI['CONFIG']} Configuration:{Style.RESET_ALL}")
    for section in config.sections():
        print(f"\n{Fore.CYAN}[{section}]{Style.RESET_ALL}")
        for option in config.options(section):
            print(f"  {option} = {config.get(section, option)}")


def force_update_config(config_dir: Optional[str] = None) -> configparser.ConfigParser:
    """Back up config.ini as config.ini.<timestamp>.bak, then regenerate it with defaults filled in.

    Returns:
        configparser.ConfigParser: Updated ConfigParser object
    """
    global _config_cache
    _config_cache = None

    config_file = os.path.join(config_dir or get_default_config_dir(), CONFIG_FILE_NAME)
    if os.path.exists(config_file):
        timestamp = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
        backup_file = f"{config_file}.{timestamp}.bak"
        try:
            shutil.copy2(config_file, backup_file)
            logger.info(f"Config backup created: {backup_file}")
            print(f"{Fore.GREEN}{EMOJI['SUCCESS']} Backup created: {backup_file}{Style.RESET_ALL}")
        except OSError as e:
            logger.error(f"Error creating config backup: {e}")

    _config_cache = setup_config(config_dir)
    return _config_cache


def get_config(config_dir: Optional[str] = None) -> configparser.ConfigParser:
    """Configuration for this process; parsed once and cached"""
    global _config_cache

    if _config_cache is None:
        _config_cache = setup_config(config_dir)
    return _config_cache


def reset_config_cache() -> None:
    global _config_cache
    _config_cache = None


def get_system_paths(config: configparser.ConfigParser) -> SystemPaths:
    """SystemPaths honoring the [Paths] vscode_config_dir override"""
    override = config.get('Paths', 'vscode_config_dir', fallback='').strip()
    return resolve_system_paths(config_dir_override=os.path.expanduser(override) if override else None)


def setup_logging(config: configparser.ConfigParser, console: bool = True) -> None:
    """Configure the root logger from the [Logging] section (console plus log file)"""
    level_name = config.get('Logging', 'log_level', fallback='INFO').upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    handlers = []
    if console:
        handlers.append(logging.StreamHandler())

    log_file = config.get('Logging', 'log_file', fallback='')
    if log_file:
        try:
            os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        except OSError as e:
            print(f"{Fore.YELLOW}{EMOJI['WARNING']} Cannot write log file {log_file}: {e}{Style.RESET_ALL}")

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT, handlers=handlers, force=True)
