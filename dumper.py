import logging
import os
import shlex
import subprocess
from datetime import datetime, timezone

import config

DEFAULT_DUMP_COMMAND = "mysqldump"
PASSWORD_ENV_VAR = "MYSQL_PWD"

logger = logging.getLogger(__name__)


def build_dump_command(db_config: config.Config, with_password: bool = True) -> list[str]:
    cmd = shlex.split(db_config.override_command or DEFAULT_DUMP_COMMAND)
    cmd += [
        "--hex-blob",
        "-h", db_config.db_host,
        "-P", str(db_config.db_port),
        "-u", db_config.db_user,
    ]
    if with_password:
        cmd.append(f"-p{db_config.db_password}")
    cmd.append(db_config.db_name)
    return cmd


def mask_command(cmd: list[str]) -> str:
    return " ".join("-p****" if arg.startswith("-p") and arg != "-p" else shlex.quote(arg) for arg in cmd)


class DumpRunner:
    """Runs mysqldump (or the configured override) into a local file.

    The dump goes straight from the child's stdout into the destination file,
    so nothing is buffered in memory. A failed run may leave a partial file
    behind; removing it is not this class's job.
    """

    def __init__(self, db_config: config.Config, log: logging.Logger | None = None):
        self._config = db_config
        self._log = log or logger

    def dump(self, dump_file: str) -> bool:
        cmd = build_dump_command(self._config, with_password=not self._config.password_via_env)
        env = None
        if self._config.password_via_env:
            env = dict(os.environ, **{PASSWORD_ENV_VAR: self._config.db_password})

        self._log.info("Running: %s > %s", mask_command(cmd), dump_file)
        try:
            f = open(dump_file, "wb")
        except OSError as e:
            return self._failed(f"cannot write {dump_file}: {e}")

        with f:
            try:
                result = subprocess.run(
                    cmd,
                    stdout=f,
                    stderr=subprocess.PIPE,
                    env=env,
                    timeout=self._config.dump_timeout,
                )
            except FileNotFoundError:
                return self._failed(f"dump command not found: {cmd[0]}")
            except subprocess.TimeoutExpired:
                return self._failed(f"dump timed out after {self._config.dump_timeout}s")
            except OSError as e:
                return self._failed(str(e))

        if result.returncode != 0:
            stderr = (result.stderr or b"").decode(errors="replace").strip()[:500]
            return self._failed(f"exit code {result.returncode}: {stderr}")

        self._log.info("MySQL: Dump created at %s", dump_file)
        return True

    def _failed(self, reason: str) -> bool:
        self._log.error("Unable to perform a backup at %s (%s)", datetime.now(timezone.utc).isoformat(), reason)
        return False
