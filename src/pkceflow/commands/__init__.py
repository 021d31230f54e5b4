"""Built-in CLI sub-commands for pkceflow.

* :mod:`~pkceflow.commands.signin` -- ``login`` plus the single-step
  ``authorize-url``, ``exchange`` and ``userinfo`` commands.
* :mod:`~pkceflow.commands.tools` -- ``pkce``, ``discover`` and
  ``parse-redirect``, which need no browser.
* :mod:`~pkceflow.commands.profile` -- the ``profile`` group for saved
  client registrations.

Single commands are plain callback functions registered on the root app;
the ``profile`` group is a :class:`typer.Typer` sub-application.
"""
