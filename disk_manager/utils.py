import subprocess
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def run_command(cmd: list, input_text: Optional[str] = None, timeout: Optional[float] = None) -> Tuple[bool, str]:
    """
    Safely execute a command and return its success status and output.
    input_text is written to stdin and never logged.
    Returns: (success_boolean, std_out_or_error_string)
    """
    try:
        # shell=False always: device names end up in argv
        result = subprocess.run(
            cmd,
            input=input_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False
        )
        if result.returncode == 0:
            return True, result.stdout.strip()
        else:
            error = result.stderr.strip() or result.stdout.strip()
            logger.error(f"Command failed '{' '.join(cmd)}': {error}")
            return False, error

    except FileNotFoundError:
        logger.error(f"Command not found: {cmd[0]}")
        return False, f"Command not found: {cmd[0]}"
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: '{' '.join(cmd)}'")
        return False, f"Command timed out: {cmd[0]}"
    except Exception as e:
        logger.error(f"Exception running command '{' '.join(cmd)}': {e}")
        return False, str(e)
