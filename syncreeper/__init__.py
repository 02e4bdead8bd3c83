"""SyncReeper — mirror a user's GitHub repositories onto local disk."""

__version__ = "0.1.0"
