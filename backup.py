import argparse
import logging
import os
import signal
import sys
import time
from typing import Callable

import config
from dumper import DumpRunner
from models import BackupArtifact, CycleState
from naming import generate_backup_filename, get_final_key
from scheduler import Scheduler
from uploader import S3Uploader, UploadError

CONFIG_PATH = os.environ.get("BACKUPER_CONFIG", os.path.join(os.path.dirname(os.path.abspath(__file__)), "config.yaml"))
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("backuper")


class Backuper:
    """One backup cycle: dump -> upload -> remove the local file.

    The local dump is deleted only after the upload succeeded. When the
    upload fails the file stays in ``backup_dir`` so it can be inspected or
    pushed by hand.
    """

    def __init__(
        self,
        backup_config: config.Config,
        dumper=None,
        uploader=None,
        log: logging.Logger | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._config = backup_config
        self._log = log or logger
        self._clock = clock or time.time

        self._dumper = dumper or DumpRunner(backup_config, log=self._log)
        self._uploader = uploader or S3Uploader(backup_config, log=self._log)

    def new_artifact(self) -> BackupArtifact:
        path = generate_backup_filename(
            self._config.db_name,
            int(self._clock() * 1000),
            self._config.backup_dir,
        )
        return BackupArtifact(path=path, key=get_final_key(path, self._config.key_prefix))

    def run_cycle(self) -> CycleState:
        try:
            return self._run_cycle()
        except Exception:
            self._log.exception("Unexpected error during backup cycle")
            return CycleState.FAILED

    def _run_cycle(self) -> CycleState:
        os.makedirs(self._config.backup_dir, exist_ok=True)
        artifact = self.new_artifact()

        self._log.debug("Cycle state: %s", CycleState.DUMPING.value)
        if not self._dumper.dump(artifact.path):
            return CycleState.FAILED

        if os.path.exists(artifact.path):
            artifact.size_mb = os.path.getsize(artifact.path) / (1024 * 1024)

        self._log.debug("Cycle state: %s (%.2f MB)", CycleState.UPLOADING.value, artifact.size_mb)
        try:
            self._uploader.upload(artifact.path, artifact.key)
        except UploadError:
            self._log.warning("Keeping %s on disk for manual recovery", artifact.path)
            return CycleState.FAILED

        self._log.debug("Cycle state: %s", CycleState.CLEANING.value)
        self._cleanup(artifact)
        return CycleState.DONE

    def _cleanup(self, artifact: BackupArtifact) -> None:
        try:
            os.remove(artifact.path)
        except OSError as e:
            # The upload already succeeded; a leftover file does not fail the cycle.
            self._log.warning("Cleanup: unable to remove %s: %s", artifact.path, e)


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Periodic MySQL backup to S3")
    parser.add_argument("--config", "-c", default=CONFIG_PATH, help="Path to the YAML/JSON config file")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--once", action="store_true", help="Run a single backup cycle and exit")
    return parser.parse_args(argv)


def main(argv=None) -> int | None:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        backup_config = config.load_config(args.config)
    except config.ConfigError as e:
        logger.error("Config file is not valid! %s", e)
        return None

    backuper = Backuper(backup_config)
    scheduler = Scheduler(backuper.run_cycle, backup_config.interval, log=logger)

    if args.once:
        return 0 if scheduler.run_once() is CycleState.DONE else 1

    def _handle_signal(signum, frame):
        logger.info("Received %s, stopping after the current cycle", signal.Signals(signum).name)
        scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handle_signal)

    logger.info("Starting backup daemon...")
    scheduler.run_forever()
    return None


if __name__ == "__main__":
    sys.exit(main())
