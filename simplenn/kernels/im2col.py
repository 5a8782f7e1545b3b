from ..helpers.Backend import backend
from ..errors import KernelError


def output_size(H, W, kh, kw, stride, pad):
    pt, pb, pl, pr = pad
    sh, sw = stride
    H_out = (H + pt + pb - kh) // sh + 1
    W_out = (W + pl + pr - kw) // sw + 1
    if H_out <= 0 or W_out <= 0:
        raise KernelError(
            f"window {kh}x{kw} does not fit input {H}x{W} with padding {pad}"
        )
    return H_out, W_out


def im2col(x, kh, kw, stride=(1, 1), pad=(0, 0, 0, 0), value=0.0):
    """
    Unfold every kh x kw window of x into a row.

    x: (B, C, H, W)
    returns: cols (B, H_out*W_out, C*kh*kw), H_out, W_out
    Each row is ordered (c, u, v), matching weights.reshape(O, -1) for (O, C, kh, kw) filters.
    """
    if x.ndim != 4:
        raise KernelError(f"expected a 4-D (B, C, H, W) input, got shape {tuple(x.shape)}")
    B, C, H, W = x.shape
    pt, pb, pl, pr = pad
    sh, sw = stride
    H_out, W_out = output_size(H, W, kh, kw, stride, pad)

    if any(pad):
        x = backend.pad(x, ((0, 0), (0, 0), (pt, pb), (pl, pr)), constant_values=value)

    # absolute row/column of every (window, offset) pair
    rows = (backend.arange(H_out) * sh)[:, None] + backend.arange(kh)[None, :]  # (H_out, kh)
    cols = (backend.arange(W_out) * sw)[:, None] + backend.arange(kw)[None, :]  # (W_out, kw)

    # (B, C, H_out, W_out, kh, kw)
    patches = x[:, :, rows[:, None, :, None], cols[None, :, None, :]]
    patches = backend.transpose(patches, (0, 2, 3, 1, 4, 5))
    return backend.reshape(patches, (B, H_out * W_out, C * kh * kw)), H_out, W_out


def col2im(cols, x_shape, kh, kw, stride=(1, 1), pad=(0, 0, 0, 0)):
    """
    Adjoint of im2col: scatter-add rows back onto an input-shaped array.

    cols: (B, H_out*W_out, C*kh*kw); x_shape: (B, C, H, W) of the unpadded input.
    """
    B, C, H, W = x_shape
    pt, pb, pl, pr = pad
    sh, sw = stride
    H_out, W_out = output_size(H, W, kh, kw, stride, pad)

    patches = backend.reshape(cols, (B, H_out, W_out, C, kh, kw))
    patches = backend.transpose(patches, (0, 3, 1, 2, 4, 5))  # (B, C, H_out, W_out, kh, kw)

    out = backend.zeros((B, C, H + pt + pb, W + pl + pr), dtype=cols.dtype)
    # one strided slice per kernel offset, vectorized over batch/channel/windows
    for u in range(kh):
        h_end = u + sh * (H_out - 1) + 1
        for v in range(kw):
            w_end = v + sw * (W_out - 1) + 1
            out[:, :, u:h_end:sh, v:w_end:sw] += patches[:, :, :, :, u, v]

    return out[:, :, pt:pt + H, pl:pl + W]
