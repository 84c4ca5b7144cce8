"""Built-in CLI commands for the ``deskauth`` host.

Sub-modules:
    auth: ``login``, ``manual`` and ``logout``.
    config: ``config set`` and ``config show``.
"""
