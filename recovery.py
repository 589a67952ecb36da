"""
Request recovery log.

Bodies of authenticated POST/PUT requests are dumped to
``<dir>/<userId>_<endpoint>_<timestamp>.json`` after the response has been
sent, so a user can recover work lost to a crash. Writing is best effort: an
I/O failure is logged and never reaches the request.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import BackgroundTasks, Depends, Request

from security import get_current_user

logger = logging.getLogger("study_share.recovery")


class RecoveryLog:
    def __init__(self, directory: str, enabled: bool = True):
        self.directory = directory
        self.enabled = enabled

    def _path(self, filename: str) -> str:
        return os.path.join(self.directory, os.path.basename(filename))

    def record(self, user_id: str, method: str, url: str, body: Any) -> Optional[str]:
        if not self.enabled:
            return None
        stamp = datetime.now(timezone.utc).isoformat().replace(":", "-")
        endpoint = url.replace("/", "_")
        filename = f"{user_id}_{endpoint}_{stamp}.json"
        entry = {"method": method, "url": url, "body": body, "userId": user_id, "timestamp": stamp}
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(self._path(filename), "w", encoding="utf-8") as fh:
                json.dump(entry, fh, indent=2, default=str)
        except OSError as e:
            logger.error("Error saving recovery data for %s %s: %s", method, url, e)
            return None
        return filename

    def entries_for(self, user_id: str) -> List[dict]:
        if not os.path.isdir(self.directory):
            return []
        entries = []
        for name in sorted(os.listdir(self.directory)):
            if not name.startswith(f"{user_id}_"):
                continue
            try:
                with open(self._path(name), encoding="utf-8") as fh:
                    entry = json.load(fh)
            except (OSError, ValueError) as e:
                logger.warning("Error reading recovery file %s: %s", name, e)
                continue
            entry["filename"] = name
            entries.append(entry)
        return entries

    def delete(self, filename: str) -> bool:
        path = self._path(filename)
        if not os.path.isfile(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            logger.error("Error deleting recovery file %s: %s", filename, e)
            return False
        return True


def get_recovery_log(request: Request) -> RecoveryLog:
    return request.app.state.recovery


async def capture_request(request: Request, background_tasks: BackgroundTasks, current=Depends(get_current_user)):
    """Route dependency queueing the request body for the recovery log."""
    if request.method not in ("POST", "PUT"):
        return
    if "application/json" not in request.headers.get("content-type", ""):
        return
    try:
        body = await request.json()
    except ValueError:
        return
    log = get_recovery_log(request)
    background_tasks.add_task(log.record, str(current["_id"]), request.method, request.url.path, body)
