#!/usr/bin/env python3

"""
Packaging of the proxy-authentication browser extension.

Chrome cannot take proxy credentials on the command line, so sessions that
use an authenticating proxy load a tiny generated extension that pins the
proxy and answers ``onAuthRequired`` with the configured credentials. Each
session gets its own ``extension<uuid>.zip`` under the extension directory;
leftovers from earlier runs are removed once per process.
"""

from __future__ import annotations

import json
import logging
import shutil
import threading
import uuid
import zipfile
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"
BACKGROUND_FILE = "background.js"

_DIRECTORY_LOCK = threading.Lock()


class _CleanupState:
    """Tracks which extension directories were already cleared this process."""

    cleared: set[Path] = set()


def build_manifest() -> dict[str, object]:
    return {
        "version": "1.0.0",
        "manifest_version": 3,
        "name": "Chrome Proxy",
        "permissions": ["proxy", "tabs", "unlimitedStorage", "storage", "webRequest", "webRequestAuthProvider"],
        "host_permissions": ["<all_urls>"],
        "background": {"service_worker": BACKGROUND_FILE},
        "minimum_chrome_version": "108.0.0",
    }


def build_background_js(host: str, port: int, username: str, password: str) -> str:
    """Return the service-worker source that configures and authenticates the proxy."""
    return f"""var config = {{
    mode: "fixed_servers",
    rules: {{
        singleProxy: {{
            scheme: "http",
            host: {json.dumps(host)},
            port: {int(port)}
        }},
        bypassList: ["localhost"]
    }}
}};

chrome.proxy.settings.set({{value: config, scope: "regular"}}, function() {{}});

function callbackFn(details) {{
    return {{
        authCredentials: {{
            username: {json.dumps(username)},
            password: {json.dumps(password)}
        }}
    }};
}}

chrome.webRequest.onAuthRequired.addListener(
    callbackFn,
    {{urls: ["<all_urls>"]}},
    ["blocking"]
);
"""


def package_proxy_extension(extension_dir: Path, host: str, port: int, username: str, password: str) -> Path:
    """Write the extension into a unique folder, zip it and return the zip path."""
    extension_id = uuid.uuid4().hex
    with _DIRECTORY_LOCK:
        extension_dir.mkdir(parents=True, exist_ok=True)
        work_dir = extension_dir / extension_id
        work_dir.mkdir()

    try:
        (work_dir / MANIFEST_FILE).write_text(json.dumps(build_manifest(), indent=2), encoding="utf-8")
        (work_dir / BACKGROUND_FILE).write_text(
            build_background_js(host, port, username, password), encoding="utf-8"
        )

        zip_path = extension_dir / f"extension{extension_id}.zip"
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.write(work_dir / MANIFEST_FILE, MANIFEST_FILE)
            archive.write(work_dir / BACKGROUND_FILE, BACKGROUND_FILE)
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)

    logger.debug(f"Packaged proxy extension for {host}:{port} -> {zip_path}")
    return zip_path


def clear_old_proxy_extensions(extension_dir: Path, force: bool = False) -> int:
    """Delete extension folders and zips left by earlier runs; return how many were removed.

    Runs once per directory per process unless ``force`` is set.
    """
    resolved = extension_dir.resolve()
    with _DIRECTORY_LOCK:
        if resolved in _CleanupState.cleared and not force:
            return 0
        _CleanupState.cleared.add(resolved)

        if not resolved.is_dir():
            return 0

        removed = 0
        for entry in resolved.iterdir():
            try:
                if entry.is_dir():
                    shutil.rmtree(entry)
                    removed += 1
                elif entry.suffix == ".zip" and entry.name.startswith("extension"):
                    entry.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove old proxy extension {entry}: {e}")

    if removed:
        logger.debug(f"Removed {removed} old proxy extension artefact(s) from {resolved}")
    return removed
