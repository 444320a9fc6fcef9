"""Setup wizard models"""

from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional


class SetupStep(str, Enum):
    CONNECTION = "connection"
    CLIENTS = "clients"
    BINDINGS = "bindings"
    SYNC = "sync"


class OrganizationMode(str, Enum):
    """How ad accounts map onto client records"""
    PER_ACCOUNT = "per_account"
    SINGLE_CLIENT = "single_client"


class SetupStatus(BaseModel):
    """Derived setup state for a user"""
    needs_setup: bool = True
    has_workspace: bool = False
    has_connection: bool = False
    has_accounts: bool = False
    has_clients: bool = False
    has_bindings: bool = False
    current_step: Optional[str] = None  # a SetupStep value or "complete"
    progress: int = 0
    workspace_id: Optional[str] = None


class AccountBinding(BaseModel):
    client_id: str
    account_ids: List[str]


class BindingResult(BaseModel):
    success: bool
    bound_count: int = 0
    error: Optional[str] = None


class CompleteStepRequest(BaseModel):
    user_id: str
    workspace_id: str
    step: SetupStep


class AutoConfigureRequest(BaseModel):
    user_id: str
    email: str = Field(..., description="Used to name the workspace")


class CreateClientsRequest(BaseModel):
    user_id: str
    workspace_id: str
    mode: OrganizationMode
    email: Optional[str] = None


class CreateClientsResponse(BaseModel):
    success: bool
    clients: List[dict] = Field(default_factory=list)
    binding: Optional[BindingResult] = None
