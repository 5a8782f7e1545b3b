from ..helpers.Backend import backend
from ..errors import KernelError
from .im2col import im2col, col2im


def _check_channels(x, weights, axis):
    if x.ndim != 4:
        raise KernelError(f"expected a 4-D (B, C, H, W) input, got shape {tuple(x.shape)}")
    if x.shape[1] != weights.shape[axis]:
        raise KernelError(
            f"input has {x.shape[1]} channels but the filters expect {weights.shape[axis]}"
        )


def conv_forward(x, layer, aux=None):
    """
    x: (B, C, H, W), weights: (O, C, kh, kw)
    returns: (B, O, H_out, W_out)
    """
    w, b = layer.weights, layer.bias
    _check_channels(x, w, 1)
    O, _, kh, kw = w.shape
    B = x.shape[0]

    cols, H_out, W_out = im2col(x, kh, kw, layer.stride, layer.pad)
    W_col = backend.reshape(w, (O, -1))  # each filter flattened into a row

    # (B, HW, Ck2) @ (Ck2, O) -> (B, HW, O)
    out = backend.matmul(cols, backend.transpose(W_col)) + backend.reshape(b, (1, 1, O))
    out = backend.reshape(backend.transpose(out, (0, 2, 1)), (B, O, H_out, W_out))
    return out, None


def conv_backward(x, layer, dzdy, aux=None):
    w = layer.weights
    O, _, kh, kw = w.shape
    B = x.shape[0]

    cols, H_out, W_out = im2col(x, kh, kw, layer.stride, layer.pad)
    HW = H_out * W_out

    # go: (B, HW, O), laid out like the forward product
    go = backend.transpose(backend.reshape(dzdy, (B, O, HW)), (0, 2, 1))

    # dW_col = sum_b go[b]^T @ cols[b]
    go_flat = backend.reshape(go, (-1, O))
    cols_flat = backend.reshape(cols, (-1, cols.shape[-1]))
    dW = backend.reshape(backend.matmul(backend.transpose(go_flat), cols_flat), w.shape)
    db = backend.sum(go, axis=(0, 1))

    W_col = backend.reshape(w, (O, -1))
    dx = col2im(backend.matmul(go, W_col), x.shape, kh, kw, layer.stride, layer.pad)
    return dx, [dW, db]


def deconv_forward(x, layer, aux=None):
    """
    Transposed convolution: runs the data-gradient of a convolution forwards.

    x: (B, C, H, W), weights: (C, O, kh, kw)
    returns: (B, O, (H-1)*sh + kh - crop_h, (W-1)*sw + kw - crop_w)
    """
    w, b = layer.weights, layer.bias
    _check_channels(x, w, 0)
    C, O, kh, kw = w.shape
    B, _, H, W = x.shape
    sh, sw = layer.stride
    ct, cb, cl, cr = layer.crop
    H_y = (H - 1) * sh + kh - ct - cb
    W_y = (W - 1) * sw + kw - cl - cr
    if H_y <= 0 or W_y <= 0:
        raise KernelError(f"crop {layer.crop} leaves an empty output")

    go = backend.transpose(backend.reshape(x, (B, C, H * W)), (0, 2, 1))  # (B, HW, C)
    cols = backend.matmul(go, backend.reshape(w, (C, -1)))  # (B, HW, O*k2)
    y = col2im(cols, (B, O, H_y, W_y), kh, kw, layer.stride, layer.crop)
    return y + backend.reshape(b, (1, O, 1, 1)), None


def deconv_backward(x, layer, dzdy, aux=None):
    w = layer.weights
    C, O, kh, kw = w.shape
    B, _, H, W = x.shape

    cols, _, _ = im2col(dzdy, kh, kw, layer.stride, layer.crop)  # (B, HW, O*k2)
    W_col = backend.reshape(w, (C, -1))

    dx = backend.matmul(cols, backend.transpose(W_col))  # (B, HW, C)
    dx = backend.reshape(backend.transpose(dx, (0, 2, 1)), (B, C, H, W))

    x_flat = backend.reshape(backend.transpose(backend.reshape(x, (B, C, H * W)), (0, 2, 1)), (-1, C))
    dW = backend.matmul(backend.transpose(x_flat), backend.reshape(cols, (-1, cols.shape[-1])))
    db = backend.sum(dzdy, axis=(0, 2, 3))
    return dx, [backend.reshape(dW, w.shape), db]
