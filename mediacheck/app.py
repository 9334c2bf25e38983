import logging
import sys
from typing import Optional

from mediacheck.config import HarnessConfig
from mediacheck.controllers.harness_controller import HarnessController
from mediacheck.services.codec_service import CodecService
from mediacheck.services.inspect_service import InspectService
from mediacheck.services.scan_service import FatalScanError, ScanService
from mediacheck.services.transform_service import TransformService

__version__ = "0.1.0"

LOG_FORMAT = "%(levelname)s: %(message)s"

logger = logging.getLogger("mediacheck")


def configure_logging(level: str) -> None:
    """Один обработчик stderr на логгер пакета; повторный вызов заменяет его."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.handlers.clear()
    logger.addHandler(handler)
    value = getattr(logging, level.upper(), None)
    logger.setLevel(value if isinstance(value, int) else logging.INFO)


class HarnessApp:
    def __init__(self, config: HarnessConfig, codec: Optional[CodecService] = None) -> None:
        self._config = config
        codec = codec or CodecService(ffprobe_bin=config.ffprobe_bin, probe_timeout=config.probe_timeout)

        self._controller = HarnessController(
            scan=ScanService(expected_failures=config.expected_failures),
            inspector=InspectService(codec),
            transformer=TransformService(codec, output_dir=config.output_dir),
        )

    def run(self) -> int:
        """Запускает прогон и возвращает код завершения процесса."""
        try:
            outcome = self._controller.run(self._config.input_dir)
        except FatalScanError as exc:
            logger.critical("%s", exc)
            return 1

        if outcome.failed:
            for failed in outcome.unexpected_failures:
                logger.debug("%s: %s", failed.target.name, "; ".join(failed.failures))
            print("Some tests or transformations failed.")
        else:
            print("All tests passed successfully.")
        return outcome.exit_code
