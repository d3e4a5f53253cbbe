"""Errors raised while provisioning a workstation."""


class ProvisionError(RuntimeError):
    """Base error; ``exit_code`` is what the process exits with."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


class PreconditionFailed(ProvisionError):
    """The machine is not in a state we are willing to provision.

    The message is the remediation guidance shown to the user.
    """


class StepFailed(ProvisionError):
    """A command run by a convergence action exited non-zero."""

    def __init__(self, command: str, exit_code: int):
        super().__init__(f"`{command}` exited with status {exit_code}", exit_code)
        self.command = command


class PollTimeout(ProvisionError):
    """A polling wait ran out of attempts."""
