from .services import DataSanitizer

_data_sanitizer = None


def get_data_sanitizer() -> DataSanitizer:
    """Provide a singleton `DataSanitizer` instance.

    The sanitizer is stateless, so one instance is shared by every caller.

    Returns
    -------
    DataSanitizer
        Instance of `DataSanitizer`.
    """
    global _data_sanitizer

    if _data_sanitizer is None:
        _data_sanitizer = DataSanitizer()

    return _data_sanitizer
