"""Error taxonomy for execution sessions.

Every error carries a stable ``code`` so transport layers can report it to
clients without string matching.
"""

from __future__ import annotations


class ExecutionError(Exception):
    """Base class for all session / sandbox failures."""

    code = "execution_error"


class UnknownSession(ExecutionError):
    code = "unknown_session"

    def __init__(self, session_id: str):
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id


class DuplicateSession(ExecutionError):
    code = "duplicate_session"

    def __init__(self, session_id: str):
        super().__init__(f"Session already registered: {session_id}")
        self.session_id = session_id


class SessionTerminated(ExecutionError):
    code = "session_terminated"

    def __init__(self, session_id: str):
        super().__init__(f"Session is terminated: {session_id}")
        self.session_id = session_id


class ProvisionError(ExecutionError):
    """The engine failed to create or start a sandbox."""

    code = "provision_failed"


class ExecError(ExecutionError):
    """A one-shot command failed inside a running sandbox."""

    code = "exec_failed"


class StreamError(ExecutionError):
    """Attaching to a sandbox output stream failed."""

    code = "stream_failed"


class InvalidCommand(ExecutionError, ValueError):
    """A command payload failed validation before delivery."""

    code = "invalid_command"
