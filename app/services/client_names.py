"""
Client name suggestions
Derives readable client names from ad account names
"""

import re
import time
from typing import Any, Dict, List, Optional

from supabase import Client

from app.core.logging import logger

PREFIXES_TO_REMOVE = [
    "Ad Account",
    "AdAccount",
    "Ads Account",
    "AdsAccount",
    "Meta Ads",
    "Facebook Ads",
    "FB Ads",
    "Ads -",
    "Ads:",
    "Account:",
    "Account -",
]

SUFFIXES_TO_REMOVE = [
    "- Ads",
    "Ads",
    "(Ads)",
    "- Ad Account",
    "(Ad Account)",
]

LOWERCASE_WORDS = {"de", "da", "do", "dos", "das", "e", "a", "o", "as", "os"}

DEFAULT_CLIENT_NAME = "Novo Cliente"
MAX_NAME_SUFFIX = 100


def clean_account_name(name: str) -> str:
    cleaned = name.strip()

    for prefix in PREFIXES_TO_REMOVE:
        cleaned = re.sub(rf"^{re.escape(prefix)}\s*[-:]?\s*", "", cleaned, flags=re.IGNORECASE)

    for suffix in SUFFIXES_TO_REMOVE:
        # lookbehind keeps "Leads" from losing its "ads"
        cleaned = re.sub(rf"\s*[-:]?\s*(?<!\w){re.escape(suffix)}$", "", cleaned, flags=re.IGNORECASE)

    cleaned = re.sub(r"\(\s*\)", "", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip()


def capitalize_client_name(name: str) -> str:
    """
    Title-case a name, keeping acronyms (e.g. "XYZ") and lowercasing
    Portuguese particles after the first word.
    """
    words = []
    for index, word in enumerate(name.split(" ")):
        if len(word) >= 2 and word == word.upper():
            words.append(word)
        elif index > 0 and word.lower() in LOWERCASE_WORDS:
            words.append(word.lower())
        else:
            words.append(word[:1].upper() + word[1:].lower())
    return " ".join(words)


def suggest_client_name(account_name: str) -> str:
    cleaned = clean_account_name(account_name)
    if not cleaned:
        return DEFAULT_CLIENT_NAME
    return capitalize_client_name(cleaned)


def validate_client_name(name: str) -> Dict[str, Any]:
    """
    Returns:
        {"valid": bool, "error": Optional[str]}
    """
    trimmed = name.strip()

    if not trimmed:
        return {"valid": False, "error": "O nome do cliente não pode ser vazio"}
    if len(trimmed) < 2:
        return {"valid": False, "error": "O nome do cliente deve ter pelo menos 2 caracteres"}
    if len(trimmed) > 100:
        return {"valid": False, "error": "O nome do cliente não pode ter mais de 100 caracteres"}
    if trimmed.isdigit():
        return {"valid": False, "error": "O nome do cliente não pode conter apenas números"}

    return {"valid": True, "error": None}


class ClientNameService:
    """Name lookups that need the clients table"""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def client_name_exists(self, name: str, workspace_id: str) -> bool:
        result = self.supabase.table("clients")\
            .select("id")\
            .eq("workspace_id", workspace_id)\
            .ilike("name", name)\
            .limit(1)\
            .execute()
        return bool(result.data)

    def generate_unique_client_name(self, base_name: str, workspace_id: str) -> str:
        """Suggested name, suffixed " (2)", " (3)"... until unused in the workspace"""
        clean_name = suggest_client_name(base_name)

        if not self.client_name_exists(clean_name, workspace_id):
            return clean_name

        counter = 2
        unique_name = f"{clean_name} ({counter})"

        while self.client_name_exists(unique_name, workspace_id):
            counter += 1
            unique_name = f"{clean_name} ({counter})"

            if counter > MAX_NAME_SUFFIX:
                unique_name = f"{clean_name} ({int(time.time() * 1000)})"
                break

        return unique_name

    def generate_client_name_suggestions(
        self,
        accounts: List[Dict[str, str]],
        workspace_id: str,
    ) -> List[Dict[str, str]]:
        """One suggestion per ad account ({"id", "name"} dicts)"""
        return [
            {
                "account_id": account["id"],
                "account_name": account["name"],
                "suggested_name": self.generate_unique_client_name(account["name"], workspace_id),
            }
            for account in accounts
        ]

    def generate_grouped_client_name(self, workspace_id: str, user_email: Optional[str] = None) -> str:
        """Single client name for single_client mode: workspace name, email, then a default"""
        workspace = self.supabase.table("workspaces")\
            .select("name")\
            .eq("id", workspace_id)\
            .maybe_single()\
            .execute()

        workspace_name = workspace.data.get("name") if workspace and workspace.data else None
        if workspace_name:
            base_name = re.sub(r"\s*workspace\s*", "", workspace_name, flags=re.IGNORECASE).strip()
            if base_name:
                return self.generate_unique_client_name(base_name, workspace_id)

        if user_email:
            return self.generate_unique_client_name(
                capitalize_client_name(user_email.split("@")[0]), workspace_id
            )

        logger.debug(f"[SETUP] No workspace or email name for {workspace_id}, using default")
        return self.generate_unique_client_name("Minha Empresa", workspace_id)
