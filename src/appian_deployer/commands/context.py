"""Shared state handed to every command handler."""

from __future__ import annotations

import argparse
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import ApiConfig, AppConfig
from ..gateway import HttpGateway, OperationGateway
from ..orchestrator import OperationOrchestrator, PollPolicy
from .output import OutputWriter

GatewayFactory = Callable[[ApiConfig], OperationGateway]


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    output: OutputWriter
    gateway_factory: GatewayFactory = HttpGateway
    cancel_event: threading.Event = field(default_factory=threading.Event)
    _gateway: Optional[OperationGateway] = field(default=None, init=False, repr=False)

    def gateway(self) -> OperationGateway:
        """Build the gateway on first use so dry runs need no credentials."""
        if self._gateway is None:
            self._gateway = self.gateway_factory(self.config.api)
        return self._gateway

    def orchestrator(self) -> OperationOrchestrator:
        return OperationOrchestrator(self.gateway(), cancel_event=self.cancel_event)

    def poll_policy(self, args: Optional[argparse.Namespace] = None) -> PollPolicy:
        return self.config.monitor.poll_policy(
            interval_seconds=getattr(args, "interval_seconds", None),
            timeout_seconds=getattr(args, "timeout_seconds", None),
            max_consecutive_transient_errors=getattr(args, "max_transient_errors", None),
        )

    def close(self) -> None:
        if self._gateway is not None:
            self._gateway.close()
            self._gateway = None
