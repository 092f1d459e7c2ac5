"""Installation of the git pre-push hook that runs the local gate."""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Optional

from .git_facts.git import hooks_dir

logger = logging.getLogger(__name__)

HOOK_NAME = "pre-push"
HOOK_MARKER = "# installed by qualitygate"

# git passes the remote name/url as arguments; the gate takes none.
HOOK_SCRIPT = f"""#!/bin/sh
{HOOK_MARKER}
exec qualitygate pre-push
"""


class HookExistsError(FileExistsError):
    """A pre-push hook not written by us is already installed."""


def install_pre_push_hook(repo: Optional[str | Path] = None, *, force: bool = False) -> Path:
    """
    Write the pre-push hook into the repository's hooks directory.

    An existing hook we did not write is left alone unless ``force`` is set.
    Returns the path of the hook.
    """
    directory = hooks_dir(repo)
    directory.mkdir(parents=True, exist_ok=True)
    hook = directory / HOOK_NAME

    if hook.exists() and not force:
        if HOOK_MARKER not in hook.read_text(errors="replace"):
            raise HookExistsError(f"{hook} already exists; use --force to replace it")

    hook.write_text(HOOK_SCRIPT)
    hook.chmod(hook.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    logger.info("Installed %s hook at %s", HOOK_NAME, hook)
    return hook
