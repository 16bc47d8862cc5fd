"""
Shared state passed to every CLI command via ctx.obj.
"""
from typing import Any, Dict, Optional

from chatgpt_exporter.core.cancellation import CancellationToken
from chatgpt_exporter.core.config import ExporterConfig
from chatgpt_exporter.readers import ChatGPTReader, RateLimitedRequester, ResolvedCredentialSupplier
from chatgpt_exporter.services import ConversationExporter, ConversationManager


class CLIContext:
    """
    Lazily builds the config, API client and services for a command.

    Nothing touches the network or the credential sources until a command
    asks for a reader.
    """

    def __init__(
        self,
        verbose: bool = False,
        access_token: Optional[str] = None,
        config_overrides: Optional[Dict[str, Any]] = None,
    ):
        self.verbose = verbose
        self.access_token = access_token
        self.config_overrides = dict(config_overrides or {})
        self.cancel_token = CancellationToken()
        self._config: Optional[ExporterConfig] = None
        self._reader: Optional[ChatGPTReader] = None

    def get_config(self, **overrides) -> ExporterConfig:
        """Config from the environment plus global and per-command overrides."""
        if self._config is None:
            values = {**self.config_overrides, **overrides}
            self._config = ExporterConfig.from_env(**values)
        return self._config

    def get_reader(self) -> ChatGPTReader:
        if self._reader is None:
            requester = RateLimitedRequester(
                self.get_config(),
                ResolvedCredentialSupplier(self.access_token),
                cancel_token=self.cancel_token,
            )
            self._reader = ChatGPTReader(requester)
        return self._reader

    def get_exporter(self) -> ConversationExporter:
        return ConversationExporter(self.get_reader())

    def get_manager(self) -> ConversationManager:
        return ConversationManager(self.get_reader())
