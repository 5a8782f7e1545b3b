from ..errors import ConfigurationError


class Layer:
    """
    Description of one pipeline stage.

    A layer only carries the fields its kernel needs; it does no math itself.
    Subclasses set ``kind`` (the registry key) and list the fields that must be
    present in ``required``.
    """
    kind = None
    required = ()

    def __init__(self, name=None, remember_output=False):
        self.name = name or self.__class__.__name__
        # opt out of activation reclamation under conserve_memory
        self.remember_output = bool(remember_output)

    def validate(self, index=None):
        for field in self.required:
            if getattr(self, field, None) is None:
                raise ConfigurationError(
                    f"missing required field '{field}'", layer_index=index, kind=self.kind
                )

    def params(self):
        # Return list of trainable arrays (e.g., [W, b]); order matches the gradients
        return []

    def __repr__(self):
        return f"{self.__class__.__name__}(kind={self.kind!r}, name={self.name!r})"


def to_pair(value):
    """int -> (v, v); pairs pass through."""
    if isinstance(value, (tuple, list)):
        if len(value) != 2:
            raise ConfigurationError(f"expected an int or a pair, got {value!r}")
        return int(value[0]), int(value[1])
    return int(value), int(value)


def to_padding(value):
    """Normalize padding to (top, bottom, left, right)."""
    if isinstance(value, (tuple, list)):
        if len(value) == 4:
            return tuple(int(v) for v in value)
        if len(value) == 2:
            return int(value[0]), int(value[0]), int(value[1]), int(value[1])
        raise ConfigurationError(f"padding must have 1, 2 or 4 entries, got {value!r}")
    return (int(value),) * 4
