"""Конфигурация прогона: аргументы командной строки и переменные окружения."""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ENV_LOG_LEVEL = "MEDIACHECK_LOG_LEVEL"
ENV_FFPROBE = "MEDIACHECK_FFPROBE"
ENV_PROBE_TIMEOUT = "MEDIACHECK_PROBE_TIMEOUT"

DEFAULT_FFPROBE = "ffprobe"
DEFAULT_PROBE_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class HarnessConfig:
    input_dir: Path
    output_dir: Path
    expected_failures: str = ""
    log_level: str = "INFO"
    ffprobe_bin: str = DEFAULT_FFPROBE
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT_S

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> "HarnessConfig":
        """Собирает конфигурацию из разобранных аргументов и окружения.

        Raises:
            ValueError: если `MEDIACHECK_PROBE_TIMEOUT` не является положительным числом.
        """
        env = os.environ if environ is None else environ

        raw_timeout = env.get(ENV_PROBE_TIMEOUT, "").strip()
        probe_timeout = DEFAULT_PROBE_TIMEOUT_S
        if raw_timeout:
            try:
                probe_timeout = float(raw_timeout)
            except ValueError as exc:
                raise ValueError(f"{ENV_PROBE_TIMEOUT} must be a number, got {raw_timeout!r}") from exc
            if probe_timeout <= 0:
                raise ValueError(f"{ENV_PROBE_TIMEOUT} must be > 0, got {raw_timeout!r}")

        if getattr(args, "verbose", False):
            log_level = "DEBUG"
        else:
            log_level = env.get(ENV_LOG_LEVEL, "").strip().upper() or "INFO"

        return cls(
            input_dir=Path(args.input_dir),
            output_dir=Path(args.output_dir),
            expected_failures=args.expected_failures or "",
            log_level=log_level,
            ffprobe_bin=env.get(ENV_FFPROBE, "").strip() or DEFAULT_FFPROBE,
            probe_timeout=probe_timeout,
        )
