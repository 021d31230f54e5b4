"""Concrete :class:`~pkceflow.flow.Presenter` implementations for terminal use.

* :class:`LoopbackBrowserPresenter` -- opens the system browser and
  captures the redirect on a local HTTP listener.
* :class:`ManualPastePresenter` -- the user pastes the redirect URL at a
  prompt.
"""

from pkceflow.presenters.loopback import LoopbackBrowserPresenter, loopback_address
from pkceflow.presenters.manual import ManualPastePresenter

__all__ = ["LoopbackBrowserPresenter", "ManualPastePresenter", "loopback_address"]
