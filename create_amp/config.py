"""create-amp runtime settings.

Everything the generator needs from the process environment is captured once,
at startup, in a ``Settings`` instance that is then passed explicitly to the
resolver, the corpus and the generator.  No other module reads ``os.environ``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_TEMPLATES_URL = "https://codeload.github.com/edgeandnode/amp-templates/tar.gz/main"
DEFAULT_ARCHIVE_ROOT = "amp-templates-main"


class Settings(BaseModel):
    """Ambient configuration for a single create-amp run."""

    templates_dir: Optional[Path] = Field(
        default=None,
        description="Local template corpus root; when unset the remote archive is used",
    )
    templates_url: str = Field(default=DEFAULT_TEMPLATES_URL)
    archive_root: str = Field(
        default=DEFAULT_ARCHIVE_ROOT,
        description="Top-level directory name inside the downloaded archive",
    )
    download_timeout: float = Field(default=60.0, gt=0, description="Seconds")
    git_timeout: float = Field(default=60.0, gt=0, description="Seconds per git command")
    install_timeout: float = Field(default=600.0, gt=0, description="Seconds")
    user_agent: str = Field(
        default="",
        description="npm_config_user_agent of the invoking package manager, if any",
    )
    home_dir: Path = Field(default_factory=Path.home)
    cwd: Path = Field(default_factory=Path.cwd)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build ``Settings`` from environment variables.

        Recognised variables (all optional):
            CREATE_AMP_TEMPLATES_DIR, CREATE_AMP_TEMPLATES_URL,
            CREATE_AMP_DOWNLOAD_TIMEOUT, CREATE_AMP_GIT_TIMEOUT,
            CREATE_AMP_INSTALL_TIMEOUT, npm_config_user_agent.
        """
        kwargs: dict[str, object] = {}
        if os.environ.get("CREATE_AMP_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["CREATE_AMP_TEMPLATES_DIR"])
        if os.environ.get("CREATE_AMP_TEMPLATES_URL"):
            kwargs["templates_url"] = os.environ["CREATE_AMP_TEMPLATES_URL"]
        if os.environ.get("CREATE_AMP_DOWNLOAD_TIMEOUT"):
            kwargs["download_timeout"] = float(os.environ["CREATE_AMP_DOWNLOAD_TIMEOUT"])
        if os.environ.get("CREATE_AMP_GIT_TIMEOUT"):
            kwargs["git_timeout"] = float(os.environ["CREATE_AMP_GIT_TIMEOUT"])
        if os.environ.get("CREATE_AMP_INSTALL_TIMEOUT"):
            kwargs["install_timeout"] = float(os.environ["CREATE_AMP_INSTALL_TIMEOUT"])

        return cls(user_agent=os.environ.get("npm_config_user_agent", ""), **kwargs)
