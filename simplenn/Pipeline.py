from .StateRecord import StateRecord, FORWARD, BACKWARD, UNINITIALIZED
from .layers import make_layer, LOSS_KINDS
from .kernels import lookup
from .options import ExecutionOptions, ExecutionContext
from .errors import ConfigurationError, StateConsistencyError
from .helpers.Backend import backend


class PipelineExecutor:
    """
    Runs a linear chain of layers forwards and, optionally, backwards.

    The executor owns no layer state: everything a pass produces goes into a
    list of StateRecords (one per position, ``n + 1`` for ``n`` layers) that is
    returned to the caller. Record ``i + 1`` holds what layer ``i`` produced:
    its activation, its auxiliary data, its parameter gradients and its timings.
    Record ``i`` receives the gradient w.r.t. layer ``i``'s input.
    """

    def __init__(self, context=None):
        self.context = context if context is not None else ExecutionContext()

    # ================== forward ==================
    def forward(self, layers, x, options=None, will_backward=False, **kwargs):
        """
        Args:
            layers: sequence of Layer objects or layer dicts.
            x: network input, already normalized.
            options: ExecutionOptions or dict; keyword arguments override it.
            will_backward: whether a backward pass follows. Only then must
                inputs of non-ReLU layers survive conserve_memory.
        Returns:
            list of StateRecord.
        """
        opts = ExecutionOptions.coerce(options, **kwargs)
        ctx = self.context
        n = len(layers)
        if n == 0:
            raise ConfigurationError("the layer list is empty")
        records = self._prepare_records(n, x, opts)

        ctx.begin("forward", opts, n)
        t_start = ctx.clock()
        computed = 0
        for i in range(n):
            if records[i + 1].activation is not None:
                # already computed by an earlier (staged) call
                if records[i + 1].stage == UNINITIALIZED:
                    records[i + 1].stage = FORWARD
                continue
            layer = make_layer(layers[i], i)
            layer.validate(i)
            t0 = ctx.clock()

            if layer.kind == "custom":
                records[i + 1] = self._custom_call(layer.forward, layer, records[i], records[i + 1], i, "forward")
            else:
                self._forward_layer(layer, records[i], records[i + 1], opts, i)
            records[i + 1].stage = FORWARD

            if self._forget(layer, opts, will_backward):
                records[i].activation = None
            ctx.barrier(opts)
            elapsed = ctx.clock() - t0
            records[i + 1].forward_time = elapsed
            ctx.layer_done("forward", i, layer, elapsed, opts, shape=getattr(records[i + 1].activation, "shape", None))
            computed += 1
        ctx.end("forward", opts, ctx.clock() - t_start, computed)
        return records

    def _prepare_records(self, n, x, opts):
        if opts.records is None:
            records = StateRecord.allocate(n)
        else:
            records = opts.records
            if len(records) != n + 1:
                raise ConfigurationError(
                    f"records has {len(records)} entries, expected {n + 1} for {n} layers"
                )
        if x is not None:
            records[0].activation = backend.float_array(x)
            records[0].stage = FORWARD
        elif records[0].activation is None and records[1].activation is None:
            raise StateConsistencyError("no input given and record 0 holds no activation")
        return records

    def _forward_layer(self, layer, rec_in, rec_out, opts, i):
        kernel = lookup(layer)
        if kernel is None or kernel[0] is None:
            raise ConfigurationError("unknown layer type", layer_index=i, kind=layer.kind)
        x = rec_in.activation
        if x is None:
            raise StateConsistencyError("input activation is absent (reclaimed or never computed)", layer_index=i, kind=layer.kind)

        aux = None
        if layer.kind == "dropout":
            if opts.disable_dropout:
                rec_out.activation = x
                return
            if opts.freeze_dropout:
                aux = rec_out.auxiliary
                if aux is None:
                    raise StateConsistencyError("freeze_dropout needs a mask in the output record", layer_index=i, kind=layer.kind)

        y, aux = kernel[0](x, layer, aux)
        rec_out.activation = y
        if aux is not None:
            rec_out.auxiliary = aux

    @staticmethod
    def _forget(layer, opts, will_backward):
        """Whether layer's input activation can be dropped right after its forward call."""
        if not opts.conserve_memory:
            return False
        # ReLU backward can run on its output instead of its input
        if will_backward and layer.kind != "relu":
            return False
        if layer.kind in LOSS_KINDS:
            return False
        return not layer.remember_output

    # ================== backward ==================
    def backward(self, layers, records, dzdy, options=None, **kwargs):
        """
        Propagate ``dzdy`` (the gradient w.r.t. the last activation) back
        through the last ``back_prop_depth`` layers. Fills ``activation_gradient``
        of records ``n .. start`` and ``parameter_gradients`` of the records
        after parametric layers; returns the same list.
        """
        opts = ExecutionOptions.coerce(options, **kwargs)
        ctx = self.context
        n = len(layers)
        if len(records) != n + 1:
            raise ConfigurationError(f"records has {len(records)} entries, expected {n + 1} for {n} layers")
        if not records[n].forward_computed:
            raise StateConsistencyError("backward called before forward produced the network output")

        dzdy = backend.float_array(dzdy)
        y = records[n].activation
        if y is not None and dzdy.shape != y.shape:
            if dzdy.ndim > 0:
                raise StateConsistencyError(
                    f"output gradient has shape {tuple(dzdy.shape)}, network output has {tuple(y.shape)}"
                )
            # a scalar seeds every output element
            dzdy = dzdy + backend.zeros_like(y)
        records[n].activation_gradient = dzdy
        records[n].stage = BACKWARD

        ctx.begin("backward", opts, n)
        t_start = ctx.clock()
        start = opts.depth_start(n)
        for i in range(n - 1, start - 1, -1):
            layer = make_layer(layers[i], i)
            layer.validate(i)
            rec_in, rec_out = records[i], records[i + 1]
            self._check_backward_state(layer, rec_in, rec_out, i)
            t0 = ctx.clock()

            if layer.kind == "custom":
                records[i] = rec_in = self._custom_call(layer.backward, layer, rec_in, rec_out, i, "backward")
            else:
                self._backward_layer(layer, rec_in, rec_out, opts, i)
            rec_in.stage = BACKWARD

            if opts.conserve_memory:
                # gradients flow one step at a time
                rec_out.activation_gradient = None
            ctx.barrier(opts)
            elapsed = ctx.clock() - t0
            rec_out.backward_time = elapsed
            ctx.layer_done("backward", i, layer, elapsed, opts)
        ctx.end("backward", opts, ctx.clock() - t_start, n - start)
        return records

    def _check_backward_state(self, layer, rec_in, rec_out, i):
        if rec_out.stage == UNINITIALIZED:
            raise StateConsistencyError("no matching forward call for this layer", layer_index=i, kind=layer.kind)
        if rec_out.activation_gradient is None:
            raise StateConsistencyError("output gradient is absent", layer_index=i, kind=layer.kind)
        if layer.kind == "custom":
            return
        kernel = lookup(layer)
        if kernel is None or kernel[1] is None:
            raise ConfigurationError("layer type has no backward kernel", layer_index=i, kind=layer.kind)

    def _backward_input(self, layer, rec_in, rec_out, i):
        if rec_in.activation is not None:
            return rec_in.activation
        if layer.kind == "relu" and rec_out.activation is not None:
            # input was reclaimed: relu's output has the same sign pattern
            return rec_out.activation
        raise StateConsistencyError("input activation was reclaimed and cannot be reconstructed", layer_index=i, kind=layer.kind)

    def _backward_layer(self, layer, rec_in, rec_out, opts, i):
        dzdy = rec_out.activation_gradient
        if layer.kind == "dropout" and opts.disable_dropout:
            rec_in.activation_gradient = dzdy
            return
        if layer.kind == "dropout" and rec_out.auxiliary is None:
            raise StateConsistencyError("dropout mask is missing from the output record", layer_index=i, kind=layer.kind)

        x = self._backward_input(layer, rec_in, rec_out, i)
        dzdx, grads = lookup(layer)[1](x, layer, dzdy, rec_out.auxiliary)
        rec_in.activation_gradient = dzdx
        if grads is not None:
            self._store_parameter_gradients(rec_out, grads, opts)

    @staticmethod
    def _store_parameter_gradients(rec_out, grads, opts):
        previous = rec_out.parameter_gradients
        if opts.accumulate and previous is not None:
            if len(previous) != len(grads):
                raise StateConsistencyError(
                    f"cannot accumulate {len(grads)} gradients into {len(previous)} existing ones"
                )
            for j, g in enumerate(grads):
                previous[j] = previous[j] + g
        else:
            rec_out.parameter_gradients = list(grads)

    # ================== custom layers ==================
    @staticmethod
    def _custom_call(fn, layer, rec_in, rec_out, i, phase):
        result = fn(layer, rec_in, rec_out)
        if not isinstance(result, StateRecord):
            raise StateConsistencyError(
                f"custom {phase} returned {type(result).__name__}, expected a StateRecord",
                layer_index=i,
                kind=layer.kind,
            )
        return result

    # ================== combined call ==================
    def run(self, layers, x, dzdy=None, options=None, **kwargs):
        """Forward, then backward when ``dzdy`` is given."""
        opts = ExecutionOptions.coerce(options, **kwargs)
        records = self.forward(layers, x, opts, will_backward=dzdy is not None)
        if dzdy is not None:
            self.backward(layers, records, dzdy, opts)
        return records


def reset_records(records, keep_parameter_gradients=True):
    """
    Clear a record list for the next batch while (optionally) keeping the
    parameter-gradient buffers, so a minibatch can be split across several
    ``accumulate=True`` calls sharing one record list.
    """
    for rec in records:
        grads = rec.parameter_gradients if keep_parameter_gradients else None
        rec.clear()
        rec.parameter_gradients = grads
    return records
