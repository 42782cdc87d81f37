"""CLI commands for camscout."""

from .configure import configure
from .deploy import deploy
from .logout import logout
from .provision import provision
from .scan import scan

__all__ = ["configure", "deploy", "logout", "provision", "scan"]
