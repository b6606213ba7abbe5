from mediarelay.extractors.registry import ProfileRegistry, default_registry


def detect_platform(url: str, registry: ProfileRegistry = default_registry) -> str:
    """
    Identify the platform for a given URL.

    Returns:
        A platform identifier (e.g. 'youtube', 'direct-file'), or 'generic'.
    """
    return registry.classify(url).id
