# helpers/logger.py
import csv, json, datetime, pathlib
import numpy as np
import matplotlib.pyplot as plt


class RunLogger:
    """
    Per-layer timing log for forward/backward passes.

    Every executed layer appends one row to ``timings.csv`` inside a
    timestamped run directory; ``save_json`` dumps the same rows and
    ``plot_timings`` draws them as a grouped bar chart.
    """
    FIELDS = ["pass", "call", "layer", "kind", "name", "time_s", "shape"]

    def __init__(self, root="runs", tag="run"):
        ts = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
        self.root = pathlib.Path(root)
        self.dir = self.root / f"{tag}_{ts}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.dir / "timings.csv"
        self.json_path = self.dir / "timings.json"
        self.rows = []
        self.calls = {"forward": 0, "backward": 0}
        self._csv_header_written = False

    # ---------- logging ----------
    def begin(self, phase):
        """Mark the start of a forward or backward call; rows are grouped by call number."""
        self.calls[phase] += 1

    def log_layer(self, phase, index, kind, name, elapsed, shape=None):
        row = {
            "pass": phase,
            "call": self.calls[phase],
            "layer": int(index),
            "kind": kind,
            "name": name,
            "time_s": float(elapsed),
            "shape": "x".join(str(d) for d in shape) if shape is not None else "",
        }
        self.rows.append(row)
        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=self.FIELDS)
            if not self._csv_header_written:
                writer.writeheader()
                self._csv_header_written = True
            writer.writerow(row)

    def save_json(self):
        with open(self.json_path, "w") as f:
            json.dump(self.rows, f, indent=2)
        return str(self.json_path)

    def totals(self, phase=None):
        """Summed time per layer index: {layer: seconds}."""
        out = {}
        for row in self.rows:
            if phase is None or row["pass"] == phase:
                out[row["layer"]] = out.get(row["layer"], 0.0) + row["time_s"]
        return out

    # ---------- plotting ----------
    def _plots_dir(self, subdir):
        out = self.dir / subdir
        out.mkdir(parents=True, exist_ok=True)
        return out

    def plot_timings(self, tag="run", subdir="plots"):
        """
        Saves per-layer forward/backward times as timings_<tag>.png.
        Returns the image path, or None when nothing has been logged.
        """
        if not self.rows:
            return None
        fwd = self.totals("forward")
        bwd = self.totals("backward")
        layers = sorted(set(fwd) | set(bwd))
        kinds = {row["layer"]: row["kind"] for row in self.rows}
        idx = np.arange(len(layers))
        width = 0.4

        outdir = self._plots_dir(subdir)
        plt.figure(figsize=(max(6, len(layers) * 0.6), 4))
        plt.bar(idx - width / 2, [fwd.get(l, 0.0) * 1e3 for l in layers], width, label="forward")
        plt.bar(idx + width / 2, [bwd.get(l, 0.0) * 1e3 for l in layers], width, label="backward")
        plt.xticks(idx, [f"{l}:{kinds[l]}" for l in layers], rotation=45, ha="right")
        plt.ylabel("Time (ms)")
        plt.title(f"Per-layer time ({tag})")
        plt.legend()
        plt.tight_layout()
        path = outdir / f"timings_{tag}.png"
        plt.savefig(path, dpi=160)
        plt.close()
        return str(path)
