def get_storage():
    """
    Backend chosen by StorageConfig; the memory fallback, when enabled,
    is decided on first use.
    """
    from django.apps import apps

    return apps.get_app_config("storage").get_storage()
