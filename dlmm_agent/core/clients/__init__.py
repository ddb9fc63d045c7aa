from dlmm_agent.core.clients.HttpClient import HttpClient
from dlmm_agent.core.clients.JupiterUltraClient import JupiterUltraClient
from dlmm_agent.core.clients.protocols import (
    AlertSink,
    DlmmPoolProtocol,
    LedgerClientProtocol,
    SwapClientProtocol,
    TelemetryClientProtocol,
)
from dlmm_agent.core.clients.SlackClient import SlackClient
from dlmm_agent.core.clients.SolanaRpcClient import SolanaRpcClient
from dlmm_agent.core.clients.TinybirdClient import TinybirdClient

__all__ = [
    "AlertSink",
    "DlmmPoolProtocol",
    "HttpClient",
    "JupiterUltraClient",
    "LedgerClientProtocol",
    "SlackClient",
    "SolanaRpcClient",
    "SwapClientProtocol",
    "TelemetryClientProtocol",
    "TinybirdClient",
]
