"""Error types shared by the pipeline, the clients and the CLI."""


class FoldhostError(Exception):
    """Base class for all foldhost errors."""


class ConfigError(FoldhostError):
    """Missing or invalid deploy configuration. Raised before any remote call."""


class TransportError(FoldhostError):
    """A remote or local command exited non-zero."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command failed (rc={returncode}): {command}{detail}")


class RecoverableStepError(FoldhostError):
    """A single per-app or per-subject failure. Logged, pipeline continues."""

    def __init__(self, step: str, target: str, message: str):
        self.step = step
        self.target = target
        self.message = message
        super().__init__(f"[{step}] {target}: {message}")


class FatalPipelineError(FoldhostError):
    """Aborts the deploy. Prior live routing state is left untouched."""

    def __init__(self, step: str, message: str):
        self.step = step
        self.message = message
        super().__init__(f"[{step}] {message}")
