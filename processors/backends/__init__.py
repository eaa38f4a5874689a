from .base import DispatchResult, Invocation, InvocationBackend, OutputSink, Premise, PremiseState
from .container import ContainerBackend
from .remote import RemoteBackend

__all__ = [
    "ContainerBackend",
    "DispatchResult",
    "Invocation",
    "InvocationBackend",
    "OutputSink",
    "Premise",
    "PremiseState",
    "RemoteBackend",
]
