from fastapi import Request

from selfgate.core.engine import VerificationEngine
from selfgate.verifier.client import SelfVerifierClient


def get_engine(request: Request) -> VerificationEngine:
    return request.app.state.engine


def get_verifier(request: Request) -> SelfVerifierClient:
    return request.app.state.verifier
