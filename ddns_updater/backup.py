# /ddns-updater/ddns_updater/backup.py
import logging
import os
import time
import zipfile

module_logger = logging.getLogger("ddns_updater.backup")


def zip_files(zip_path: str, file_paths) -> int:
    """Writes the existing files among file_paths into zip_path. Returns how many were added."""
    os.makedirs(os.path.dirname(zip_path) or '.', exist_ok=True)
    added = 0
    with zipfile.ZipFile(zip_path, 'w', compression=zipfile.ZIP_DEFLATED) as archive:
        for path in file_paths:
            if not os.path.exists(path):
                module_logger.debug(f"Backup: {path} does not exist, skipping")
                continue
            archive.write(path, arcname=os.path.basename(path))
            added += 1
    return added


def backup_loop(period_seconds: int, output_dir: str, file_paths, stop_event, logger=None) -> None:
    logger = logger or module_logger
    if not period_seconds:
        logger.info("Backup disabled")
        return
    logger.info(f"Backup each {period_seconds}s; writing zip files to directory {output_dir}")
    while True:
        zip_path = os.path.join(output_dir, f"ddns-updater-backup-{time.time_ns()}.zip")
        try:
            count = zip_files(zip_path, file_paths)
            logger.info(f"Backup written to {zip_path} ({count} file(s))")
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"Backup to {zip_path} failed: {e}")
        if stop_event.wait(period_seconds):
            return
