"""Write-policy filter plugin for message relays."""

__version__ = "0.1.0"
