import math
import time

from .errors import ConfigurationError
from .helpers.Backend import backend as default_backend

# camelCase names accepted for compatibility with older network scripts
ALIASES = {
    "conserveMemory": "conserve_memory",
    "disableDropout": "disable_dropout",
    "freezeDropout": "freeze_dropout",
    "backPropDepth": "back_prop_depth",
    "res": "records",
}


class ExecutionOptions:
    """
    Per-call configuration of forward/backward.

    conserve_memory: drop activations/gradients once they are no longer needed
    sync:            block on the backend after every layer
    disable_dropout: dropout layers pass their input through
    freeze_dropout:  dropout reuses the mask already stored in the output record
    accumulate:      add parameter gradients into the existing ones
    back_prop_depth: backpropagate through the last N layers only
    records:         a previous record list to resume from
    verbose:         0 silent, 1 per-pass summary, 2 per-layer lines
    """
    FIELDS = (
        "conserve_memory", "sync", "disable_dropout", "freeze_dropout",
        "accumulate", "back_prop_depth", "records", "verbose",
    )

    def __init__(
        self,
        conserve_memory=False,
        sync=False,
        disable_dropout=False,
        freeze_dropout=False,
        accumulate=False,
        back_prop_depth=math.inf,
        records=None,
        verbose=0,
    ):
        self.conserve_memory = bool(conserve_memory)
        self.sync = bool(sync)
        self.disable_dropout = bool(disable_dropout)
        self.freeze_dropout = bool(freeze_dropout)
        self.accumulate = bool(accumulate)
        self.back_prop_depth = back_prop_depth
        self.records = records
        self.verbose = int(verbose)
        self.validate()

    def validate(self):
        if self.disable_dropout and self.freeze_dropout:
            raise ConfigurationError("disable_dropout and freeze_dropout are mutually exclusive")
        if self.back_prop_depth is None or self.back_prop_depth < 0:
            raise ConfigurationError(f"back_prop_depth must be >= 0, got {self.back_prop_depth!r}")
        if self.records is not None and not isinstance(self.records, list):
            raise ConfigurationError("records must be a list of StateRecord")

    @classmethod
    def from_dict(cls, config):
        d = {ALIASES.get(k, k): v for k, v in config.items()}
        unknown = sorted(set(d) - set(cls.FIELDS))
        if unknown:
            raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}")
        return cls(**d)

    @classmethod
    def coerce(cls, options=None, **kwargs):
        """Build options from an instance, a dict, keyword arguments, or a mix of these."""
        if isinstance(options, cls) and not kwargs:
            return options
        if isinstance(options, cls):
            base = options.as_dict()
        elif isinstance(options, dict):
            base = dict(options)
        elif options is None:
            base = {}
        else:
            raise ConfigurationError(f"cannot read options from {type(options).__name__}")
        base.update(kwargs)
        return cls.from_dict(base)

    def as_dict(self):
        return dict(vars(self))

    def depth_start(self, num_layers):
        """Index of the first layer backward reaches."""
        if self.back_prop_depth >= num_layers:
            return 0
        return num_layers - int(self.back_prop_depth)


class ExecutionContext:
    """
    Everything a call needs besides its options: the array backend used for the
    sync barrier, the clock used for timings and an optional RunLogger.
    """

    def __init__(self, backend=None, logger=None, clock=time.time):
        self.backend = backend if backend is not None else default_backend
        self.logger = logger
        self.clock = clock

    def barrier(self, options):
        if options.sync:
            self.backend.synchronize()

    def begin(self, phase, options, num_layers):
        if self.logger is not None:
            self.logger.begin(phase)
        if options.verbose > 1:
            print(f"[simplenn] {phase}: {num_layers} layer(s)")

    def layer_done(self, phase, index, layer, elapsed, options, shape=None):
        if self.logger is not None:
            self.logger.log_layer(phase, index, layer.kind, layer.name, elapsed, shape=shape)
        if options.verbose > 1:
            print(f"   {phase:8s} layer {index:3d} {layer.kind:12s} {elapsed * 1e3:8.2f} ms")

    def end(self, phase, options, elapsed, computed):
        if options.verbose > 0:
            print(f"[simplenn] {phase} done: {computed} layer(s) in {elapsed:.4f}s")
