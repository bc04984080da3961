"""Configuration for the integrity monitor package."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


@dataclass
class MonitorConfig:
    """
    Configuration options for the integrity monitor.

    All windows are tunable; none of them is part of the event contract.

    Attributes:
        tick_ms: Bounded wait of the worker loop for the next notification
        stability_ms: Time a written file must stay quiet before it is hashed
        verify_ms: Delay before a deletion is re-checked against disk
        rename_window_ms: Time a deleted path stays a rename/move candidate
        hash_algorithm: hashlib algorithm used for content fingerprints
        chunk_size: Read size used while hashing
        transient_prefixes: Filename prefixes of editor artefacts to ignore
        transient_suffixes: Filename suffixes of editor artefacts to ignore
        baseline_dir: Directory holding persisted baselines
        queue_size: Maximum number of buffered raw notifications
        stop_timeout_s: Default wait for the worker to finish on stop
    """
    tick_ms: int = 200
    stability_ms: int = 600
    verify_ms: int = 300
    rename_window_ms: int = 1200
    hash_algorithm: str = "sha256"
    chunk_size: int = 65536
    transient_prefixes: List[str] = field(default_factory=lambda: ["~"])
    transient_suffixes: List[str] = field(default_factory=lambda: [
        ".tmp",
        ".swp",
        ".bak",
    ])
    baseline_dir: Path = field(default_factory=lambda: Path.home() / ".fim")
    queue_size: int = 10000
    stop_timeout_s: float = 5.0

    def __post_init__(self):
        if isinstance(self.baseline_dir, str):
            self.baseline_dir = Path(self.baseline_dir)
        for name in ("tick_ms", "stability_ms", "verify_ms", "rename_window_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    @property
    def tick_seconds(self) -> float:
        return self.tick_ms / 1000.0

    @classmethod
    def from_env(cls, **overrides) -> "MonitorConfig":
        """
        Build a config from FIM_* environment variables.

        Keyword overrides that are not None win over the environment.

        Returns:
            A new MonitorConfig
        """
        values = {}
        int_vars = {
            "tick_ms": "FIM_TICK_MS",
            "stability_ms": "FIM_STABILITY_MS",
            "verify_ms": "FIM_VERIFY_MS",
            "rename_window_ms": "FIM_RENAME_WINDOW_MS",
        }
        for name, var in int_vars.items():
            raw = os.environ.get(var)
            if raw:
                try:
                    values[name] = int(raw)
                except ValueError:
                    raise ValueError(f"{var} must be an integer, got {raw!r}")

        if os.environ.get("FIM_HASH_ALGORITHM"):
            values["hash_algorithm"] = os.environ["FIM_HASH_ALGORITHM"]
        if os.environ.get("FIM_BASELINE_DIR"):
            values["baseline_dir"] = Path(os.environ["FIM_BASELINE_DIR"]).expanduser()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
