"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to an error category and is referenced by the
corresponding :class:`~deskauth.exceptions.DeskauthError` subclass, so
shell wrappers can tell a rejected login from an unreachable provider
without parsing stderr.

Example::

    $ deskauth login
    $ echo $?
    6   # EXIT_CONNECTION_ERROR -- the token endpoint could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or input."""

EXIT_AUTH_FAILURE = 3
"""The login attempt failed or was rejected."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred while talking to the identity provider."""
