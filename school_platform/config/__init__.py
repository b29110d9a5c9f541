from school_platform.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
