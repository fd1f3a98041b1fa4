"""
Entité User - Domain Layer
Représente un cycliste propriétaire d'activités et d'une bibliothèque de segments
"""
from sqlmodel import SQLModel, Field, Relationship
from pydantic import field_validator
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .activity import Activity


class UserBase(SQLModel):
    """Modèle de base pour User"""
    email: str = Field(unique=True, index=True, max_length=255)
    full_name: str
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Profil physiologique (fourni par le service de profil)
    ftp: Optional[float] = None  # watts, None ou 0 = inconnu
    max_heartrate: Optional[float] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        import re
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v):
            raise ValueError('Invalid email format')
        return v.lower()


class User(UserBase, table=True):
    """Entité User complète pour la base de données"""
    id: Optional[UUID] = Field(default_factory=uuid4, primary_key=True)

    # Relations
    activities: List["Activity"] = Relationship(back_populates="user")

