"""Service layer exports."""

from .install_flow import FlowOutcome, FlowState, InstallFlow, InstallFlowConfig
from .request_signature import RequestAuthenticator
from .session_codec import SessionClaims, SessionCodec
from .shop_domain import ShopDomainValidator
from .state_store import InMemoryStateStore, OAuthStateRecord, StateStore
from .token_cipher import CredentialCipher

__all__ = [
    "CredentialCipher",
    "FlowOutcome",
    "FlowState",
    "InMemoryStateStore",
    "InstallFlow",
    "InstallFlowConfig",
    "OAuthStateRecord",
    "RequestAuthenticator",
    "SessionClaims",
    "SessionCodec",
    "ShopDomainValidator",
    "StateStore",
]
