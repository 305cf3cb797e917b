"""Exceptions raised by deployment steps"""

from typing import List


class DeployError(Exception):
    """Base exception for deployment failures"""

    pass


class PrerequisiteError(DeployError):
    """A required tool, key or host condition is missing"""

    pass


class TokenError(DeployError):
    """The gateway token file is unusable"""

    pass


class CommandError(DeployError):
    """An external command exited with a nonzero status"""

    def __init__(self, cmd: List[str], returncode: int, stderr: str = ""):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(cmd)}")
