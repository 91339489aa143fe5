# Pre-mutation backup: copies of the identity files plus a tarball of the
# home root, in a fresh timestamped directory.

import logging
import os
import shutil
import tarfile
from datetime import datetime

from .console import fncPrintMessage
from .errors import SetupError

SNAPSHOT_TS_FORMAT = "%Y-%m-%d_%H-%M-%S"


# Function: fncSnapshot
# Purpose : Back up /etc/{passwd,shadow,group,gshadow} and the home root.
# Notes   : Missing identity files are warned about and skipped; the backup dir itself must be creatable.
def fncSnapshot(backup_dir: str, identity_files: tuple[str, ...], home_root: str,
                when: datetime | None = None) -> str:
    stamp = (when or datetime.now()).strftime(SNAPSHOT_TS_FORMAT)
    target = os.path.join(backup_dir, f"backup_{stamp}")
    try:
        os.makedirs(target, exist_ok=True)
        os.chmod(target, 0o700)
    except OSError as e:
        raise SetupError(f"Cannot create backup directory {target}: {e}") from e
    fncPrintMessage(f"Creating backup in {target}", "info")

    for src in identity_files:
        dst = os.path.join(target, os.path.basename(src) + ".backup")
        try:
            shutil.copy2(src, dst)
            logging.info("Backed up %s -> %s", src, dst)
        except OSError as e:
            logging.warning("Could not back up %s: %s", src, e)
            fncPrintMessage(f"Could not back up {src}: {e}", "warning")

    if os.path.isdir(home_root):
        archive = os.path.join(target, "home_backup.tar.gz")
        try:
            with tarfile.open(archive, "w:gz") as tar:
                tar.add(home_root, arcname=os.path.basename(home_root.rstrip("/")) or "home")
            os.chmod(archive, 0o600)
            logging.info("Archived %s -> %s", home_root, archive)
        except (OSError, tarfile.TarError) as e:
            logging.warning("Could not archive %s: %s", home_root, e)
            fncPrintMessage(f"Could not archive {home_root}: {e}", "warning")
    else:
        logging.warning("Home root %s not found; skipping archive", home_root)

    fncPrintMessage(f"Backup completed. Files stored in {target}", "success")
    return target
