"""
Error isolation for one live widget instance.

Any exception raised while producing or updating a document's output is
captured here and shown in place of the output, so a broken widget never
affects sibling documents or the stores. The last good output is kept for
the chrome to show underneath the message. The boundary clears itself when
the widget's identity token changes, so fixing the source clears the error.
"""
import logging
from typing import Any, Callable, Optional

from markupsafe import Markup

from livecanvas.markup import error_markup, render_html

logger = logging.getLogger(__name__)


class ErrorBoundary:
    """Catches render and update failures of one widget instance.

    Args:
        identity_token: Token of the compiled widget the instance belongs to.
        label: Name used in log messages.
    """

    def __init__(self, identity_token: Optional[str] = None, label: str = ""):
        self.identity_token = identity_token
        self.label = label
        self.error: Optional[BaseException] = None
        self.last_good: Optional[Markup] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def message(self) -> Optional[str]:
        if self.error is None:
            return None
        return f"{type(self.error).__name__}: {self.error}"

    def _capture(self, exc: BaseException, phase: str) -> None:
        self.error = exc
        logger.warning(f"Widget {self.label!r} failed during {phase}: {self.message}")

    def render(self, producer: Callable[[], Any]) -> Markup:
        """Produce output through the boundary.

        Args:
            producer: Returns a renderable; usually ``lambda: instance.show(...)``

        Returns:
            The rendered output, or the error display once a failure has been
            captured and until the boundary is reset.
        """
        if self.error is None:
            try:
                output = render_html(producer())
            except (Exception, SystemExit) as e:
                self._capture(e, "render")
            else:
                self.last_good = output
                return output
        return error_markup(self.message)

    def guard(self, action: Callable[[], Any]) -> bool:
        """Run an update hook, capturing any failure.

        Returns:
            True if the action completed, False if it failed or the boundary
            was already showing an error.
        """
        if self.error is not None:
            return False
        try:
            action()
        except (Exception, SystemExit) as e:
            self._capture(e, "update")
            return False
        return True

    def reset(self, identity_token: Optional[str]) -> bool:
        """Clear the captured error if the token changed.

        Returns:
            True if the boundary was reset.
        """
        if identity_token == self.identity_token:
            return False
        self.identity_token = identity_token
        self.error = None
        self.last_good = None
        return True
