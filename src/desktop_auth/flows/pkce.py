"""PKCE (RFC 7636) 및 state 토큰 생성."""

import base64
import hashlib
import secrets
from dataclasses import dataclass

CODE_CHALLENGE_METHOD = "S256"


@dataclass(frozen=True)
class PkceMaterial:
    """PKCE (Proof Key for Code Exchange) 챌린지."""

    code_verifier: str
    code_challenge: str
    code_challenge_method: str = CODE_CHALLENGE_METHOD


def derive_code_challenge(code_verifier: str) -> str:
    """code_verifier의 SHA256 해시를 base64url (padding 없음) 인코딩"""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce() -> PkceMaterial:
    """PKCE 챌린지 생성.

    Returns:
        PkceMaterial: code_verifier와 code_challenge 포함
    """
    # code_verifier: 43-128자, unreserved 문자만 (token_urlsafe(64) -> 86자)
    code_verifier = secrets.token_urlsafe(64)

    return PkceMaterial(
        code_verifier=code_verifier,
        code_challenge=derive_code_challenge(code_verifier),
    )


def generate_state() -> str:
    """세션 하나에만 쓰이는 state 값 (256 bits, URL-safe)"""
    return secrets.token_urlsafe(32)
