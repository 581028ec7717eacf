"""Currency Server — transactional ledger backend for a game mod.

Players log in with their game identity, check balances, pay each other,
convert in-game items to and from currency, and claim a once-per-day reward.
The ledger engine in :mod:`currency_server.ledger` owns every balance
mutation; the API and CLI layers are thin plumbing around it.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version — read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed (running from a source
# checkout), fall back to the last released version so the server still starts.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("currency-server")
except PackageNotFoundError:
    __version__ = "0.3.0"
