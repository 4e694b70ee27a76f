"""
Environment variable loading utility.

Reads simple KEY=VALUE files so the Google Maps credentials and provider
tuning knobs can be supplied without exporting them in the shell.
"""
import os
import logging

logger = logging.getLogger(__name__)


def load_env_from_file(file_path, override=True):
    """
    Load environment variables from a file.

    Blank lines and lines starting with '#' are ignored. Values may be
    wrapped in single or double quotes.

    Args:
        file_path: Path to the environment variable file.
        override: Replace variables that are already set in the environment.

    Returns:
        True if file was loaded successfully, False otherwise.
    """
    if not os.path.exists(file_path):
        logger.debug(f"Environment file not found: {file_path}")
        return False

    try:
        with open(file_path, 'r') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' not in line:
                    logger.warning(f"Skipping malformed line {line_number} in {file_path}")
                    continue

                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]
                if override or key not in os.environ:
                    os.environ[key] = value

        logger.info(f"Loaded environment variables from {file_path}")
        return True
    except OSError as e:
        logger.error(f"Error loading environment variables from {file_path}: {str(e)}")
        return False


def env_flag(name, default=False):
    """Read a boolean environment variable ('true', '1', 'yes' are truthy)."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')
