"""Error kinds raised by the executor, fetcher, renderer and orchestrator."""


class DeployError(Exception):
    """Base class for all deployment failures."""


class CommandTimeout(DeployError):
    """A subprocess ran past its wall-clock timeout and was killed."""

    def __init__(self, argv, timeout):
        self.argv = tuple(argv)
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {' '.join(self.argv)}")


class NonZeroExit(DeployError):
    """A subprocess finished with a non-zero exit status."""

    def __init__(self, argv, returncode):
        self.argv = tuple(argv)
        self.returncode = returncode
        super().__init__(f"Command exited with code {returncode}: {' '.join(self.argv)}")


class CommandNotFound(NonZeroExit):
    """The executable could not be found. Reported with the shell's code 127."""

    def __init__(self, argv):
        super().__init__(argv, 127)
        self.args = (f"'{self.argv[0]}' not found. Is it installed and on PATH?",)


class FetchFailed(DeployError):
    """The artifact download did not produce a usable response body."""

    def __init__(self, url, reason, status_code=None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Download of {url} failed: {reason}")


class CorruptArchive(DeployError):
    """The downloaded stream is not a readable gzip-compressed tar archive."""


class ArtifactNotFound(DeployError):
    def __init__(self, url, name):
        self.url = url
        self.name = name
        super().__init__(f"'{name}' not found in archive {url}")


class FilesystemError(DeployError):
    """Directory or file creation, write or permission failure."""


class RenderError(DeployError):
    """Deployment parameters could not be rendered into a manifest."""


class StepFailed(DeployError):
    """A pipeline step failed. Wraps the originating error."""

    def __init__(self, step, cause):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {cause}")
