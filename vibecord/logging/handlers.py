"""Custom logging handlers with timeout support."""

import sys

from logging_loki import LokiHandler
import requests


class TimeoutLokiHandler(LokiHandler):
    """
    LokiHandler that enforces a network timeout on every push.

    Keeps the queue listener thread from hanging on a stale VictoriaLogs
    connection.
    """

    def __init__(self, *args, timeout: float = 10.0, **kwargs):
        """
        Initialize handler with configurable timeout.

        Args:
            timeout: Request timeout in seconds (default: 10.0)
            *args, **kwargs: Passed to parent LokiHandler
        """
        super().__init__(*args, **kwargs)
        self.timeout = timeout

    def emit(self, record):
        """Emit a record with timeout protection."""
        try:
            session = self.emitter.session

            if not getattr(session, "_vibecord_timeout_installed", False):
                adapter = requests.adapters.HTTPAdapter()
                adapter.max_retries = 0  # No retries to fail fast
                session.mount("http://", adapter)
                session.mount("https://", adapter)

                original_post = session.post

                def post_with_timeout(*args, **kwargs):
                    kwargs["timeout"] = self.timeout
                    return original_post(*args, **kwargs)

                session.post = post_with_timeout
                session._vibecord_timeout_installed = True

            super().emit(record)

        except requests.exceptions.Timeout:
            print(
                f"LokiHandler timeout after {self.timeout}s - connection may be stale",
                file=sys.stderr,
            )
            # Close the session to force reconnection
            if hasattr(self.emitter, "close"):
                self.emitter.close()
        except requests.exceptions.RequestException as e:
            print(f"LokiHandler network error: {e}", file=sys.stderr)
            if hasattr(self.emitter, "close"):
                self.emitter.close()
        except Exception:
            # Don't let logging errors crash the relay
            self.handleError(record)
