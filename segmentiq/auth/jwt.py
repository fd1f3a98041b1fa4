"""
Gestion des tokens JWT pour l'authentification
Les tokens sont emis par le service d'identite ; SegmentIQ ne fait que les verifier.
"""
from datetime import datetime, timedelta
from typing import Dict, Any
from uuid import UUID
from jose import JWTError, jwt
from fastapi import HTTPException, status
from pydantic import BaseModel

from segmentiq.core.settings import get_settings

settings = get_settings()


class TokenData(BaseModel):
    """Données contenues dans un token"""
    user_id: UUID
    exp: datetime


class JWTManager:
    """Gestionnaire des tokens JWT"""

    def __init__(self):
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.access_token_expire_minutes = settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, data: Dict[str, Any]) -> str:
        """Crée un access token JWT (outillage et tests)"""
        to_encode = data.copy()
        expire = datetime.utcnow() + timedelta(minutes=self.access_token_expire_minutes)
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = "access") -> TokenData:
        """Vérifie et décode un token JWT"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials"
            )

        if payload.get("type") != token_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {token_type}"
            )

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token payload"
            )

        return TokenData(user_id=user_id, exp=datetime.utcfromtimestamp(payload.get("exp")))


# Instance globale
jwt_manager = JWTManager()


def get_current_user_id(token: str) -> UUID:
    """Extrait l'ID utilisateur du token (pour dependency injection)"""
    return jwt_manager.verify_token(token).user_id
