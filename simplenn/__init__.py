from .Pipeline import PipelineExecutor, reset_records
from .Network import Network
from .StateRecord import StateRecord
from .options import ExecutionOptions, ExecutionContext
from .errors import PipelineError, ConfigurationError, StateConsistencyError, KernelError
from .kernels import register_kernel
from . import layers

__version__ = "0.1.0"

__all__ = [
    "PipelineExecutor",
    "reset_records",
    "Network",
    "StateRecord",
    "ExecutionOptions",
    "ExecutionContext",
    "PipelineError",
    "ConfigurationError",
    "StateConsistencyError",
    "KernelError",
    "register_kernel",
    "layers",
]
