class PipelineError(Exception):
    """Base class for every error raised by simplenn."""

    def __init__(self, message, layer_index=None, kind=None):
        if layer_index is not None:
            message = f"layer {layer_index} ({kind}): {message}"
        super().__init__(message)
        self.layer_index = layer_index
        self.kind = kind


class ConfigurationError(PipelineError, ValueError):
    """Unknown layer kind, conflicting options or a missing layer field."""


class StateConsistencyError(PipelineError, RuntimeError):
    """A record is missing data that a forward or backward call depends on."""


class KernelError(PipelineError, ValueError):
    """A numeric kernel rejected its input shape or parameters."""
