UNINITIALIZED = "uninitialized"
FORWARD = "forward"
BACKWARD = "backward"


class StateRecord:
    """
    Bookkeeping slot for one pipeline position.

    Record 0 holds the network input; record i+1 holds what layer i produced.
    ``None`` marks a value that is absent, either never computed or reclaimed
    by the memory policy. ``stage`` tells the two apart for gradients: a record
    whose stage is still ``"forward"`` after backward was never reached (for
    example because it lies outside ``back_prop_depth``).
    """

    __slots__ = (
        "activation",
        "activation_gradient",
        "parameter_gradients",
        "auxiliary",
        "forward_time",
        "backward_time",
        "stage",
    )

    def __init__(self, activation=None):
        self.clear()
        if activation is not None:
            self.activation = activation
            self.stage = FORWARD

    def clear(self):
        """Return to the uninitialized state."""
        self.activation = None
        self.activation_gradient = None
        self.parameter_gradients = None
        self.auxiliary = None
        self.forward_time = 0.0
        self.backward_time = 0.0
        self.stage = UNINITIALIZED

    @staticmethod
    def allocate(num_layers):
        # one record per layer plus the input
        return [StateRecord() for _ in range(num_layers + 1)]

    @property
    def forward_computed(self):
        return self.stage in (FORWARD, BACKWARD)

    @property
    def backward_computed(self):
        return self.stage == BACKWARD

    def __repr__(self):
        shape = getattr(self.activation, "shape", None)
        return f"StateRecord(stage={self.stage!r}, activation_shape={shape})"
