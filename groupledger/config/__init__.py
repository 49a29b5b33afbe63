from groupledger.config.settings import settings

__all__ = ["settings"]
