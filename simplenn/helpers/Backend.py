# simplenn/helpers/Backend.py
import numpy as np

CUPY_ERROR = None  # why CuPy was not usable, reported by Backend(verbose=True)

try:
    import cupy as cp
    # Quick runtime check
    try:
        _ = (cp.array([1, 2, 3]) + 1).sum()
        CUPY_AVAILABLE = True
    except Exception as e:
        CUPY_ERROR = f"CuPy installed but CUDA runtime error: {e}"
        cp = None
        CUPY_AVAILABLE = False
except ImportError:
    cp = None
    CUPY_AVAILABLE = False


class Backend:
    """Array backend shared by the executor and the reference kernels.

    Wraps NumPy or CuPy behind one object so kernels never import either
    directly. Only the GPU path needs an explicit completion barrier
    (``synchronize``); on the CPU every call is already blocking.
    ``verbose=True`` prints the chosen device on construction.
    """
    def __init__(self, use_gpu=True, default_float=np.float32, verbose=False):
        self.use_gpu = bool(use_gpu and CUPY_AVAILABLE)
        self.default_float = default_float
        self.xp = cp if self.use_gpu else np
        if verbose:
            self.describe()

    def describe(self):
        if self.use_gpu:
            print("Using GPU backend (CuPy)")
            print("CuPy:", cp.__version__)
            print("GPU count:", cp.cuda.runtime.getDeviceCount())
        else:
            if CUPY_ERROR is not None:
                print(CUPY_ERROR)
            print("Using CPU backend (NumPy)")

    def ensure_array(self, x, dtype=None):
        """
        Ensure 'x' is an array of the current backend.
        Accepts scalars, lists, tuples, np/cp arrays; keeps the dtype unless one is given.
        """
        target_xp = cp if self.use_gpu else np
        if isinstance(x, target_xp.ndarray):
            if dtype is not None and x.dtype != dtype:
                return x.astype(dtype)
            return x
        if (not self.use_gpu) and (cp is not None) and isinstance(x, cp.ndarray):
            x = cp.asnumpy(x)
        arr = target_xp.asarray(x)
        if dtype is not None and arr.dtype != dtype:
            arr = arr.astype(dtype)
        return arr

    def float_array(self, x):
        """Like ensure_array, but integer/bool input is promoted to the default float."""
        arr = self.ensure_array(x)
        if arr.dtype.kind not in "fc":
            arr = arr.astype(self.default_float)
        return arr

    # -------- array creation (dtype follows the caller) --------
    def zeros(self, shape, dtype=None):
        return self.xp.zeros(shape, dtype=dtype or self.default_float)

    # -------- randomness / padding --------
    @property
    def random(self):
        return self.xp.random

    def seed(self, seed=42):
        """Seed RNG for reproducible dropout masks."""
        if self.use_gpu:
            cp.random.seed(seed)
        np.random.seed(seed)

    def pad(self, array, pad_width, mode="constant", **kwargs):
        return self.xp.pad(array, pad_width, mode=mode, **kwargs)

    # -------- sync --------
    def synchronize(self):
        """Block until all queued GPU kernels complete (timing / reclamation barrier)."""
        if self.use_gpu:
            cp.cuda.Stream.null.synchronize()

    # -------- delegate unknown attrs to xp --------
    def __getattr__(self, name):
        return getattr(self.xp, name)


# Global backend instance - can be overridden
backend = Backend(use_gpu=True)
