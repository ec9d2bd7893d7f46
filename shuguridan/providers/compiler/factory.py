from __future__ import annotations

import logging

from shuguridan.core.config import get_settings
from shuguridan.core.errors import ProviderConfigError
from shuguridan.providers.compiler.base import CompilerProvider
from shuguridan.providers.compiler.judge0 import Judge0Provider
from shuguridan.providers.compiler.wandbox import WandboxProvider


logger = logging.getLogger(__name__)


def get_compiler_provider() -> CompilerProvider:
    settings = get_settings()
    provider = (settings.compiler_provider or "wandbox").lower()

    if provider == "wandbox":
        return WandboxProvider()
    if provider == "judge0":
        if not settings.judge0_api_key:
            logger.warning("judge0_api_key_missing falling_back=wandbox")
            return WandboxProvider()
        return Judge0Provider(settings.judge0_api_key)
    raise ProviderConfigError(f"Unknown COMPILER_PROVIDER: {settings.compiler_provider}")
