"""
External command helpers shared by providers, the port resolver and the
security checks.

Every external tool is treated as unreliable: a missing binary, a timeout or
a non-zero exit all come back as a failed result instead of an exception.
"""

from __future__ import annotations
from typing import List, Tuple
import logging
import shutil
import subprocess

logger = logging.getLogger('portsight.commands')

DEFAULT_TIMEOUT = 30


def run_command(cmd: List[str], timeout: int = DEFAULT_TIMEOUT) -> Tuple[int, str, str]:
    """
    Run a command without a shell.

    Args:
        cmd: Command and arguments as list
        timeout: Timeout in seconds

    Returns:
        Tuple of (exit_code, stdout, stderr). exit_code is -1 when the command
        could not be started or timed out.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out: {' '.join(cmd)}")
        return -1, "", "timeout"
    except FileNotFoundError:
        logger.debug(f"Command not found: {cmd[0]}")
        return -1, "", f"command not found: {cmd[0]}"
    except OSError as e:
        logger.debug(f"Command failed to start: {cmd[0]}: {e}")
        return -1, "", str(e)


def command_exists(cmd: str) -> bool:
    """Check if a command exists on PATH."""
    return shutil.which(cmd) is not None
